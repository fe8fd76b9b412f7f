import typing

HeadersType = typing.Union[
    typing.Mapping[str, str],
    typing.Mapping[bytes, bytes],
    typing.Iterable[typing.Tuple[str, str]],
    typing.Iterable[typing.Tuple[bytes, bytes]],
    "Headers",
]

KT = typing.TypeVar("KT")
VT = typing.TypeVar("VT")
NormKT = typing.TypeVar("NormKT")
NormVT = typing.TypeVar("NormVT")
MultiMappingType = typing.Union[
    typing.Mapping[KT, VT], typing.Iterable[typing.Tuple[KT, VT]]
]


class MultiMapping(typing.Generic[KT, VT, NormKT, NormVT]):
    """Ordered mapping of keys to one or more values. Keys are compared
    through '_lookup_key()' but enumerated with the spelling they were
    first added with.
    """

    def __init__(self, values: typing.Optional[MultiMappingType] = ()):
        self._internal: typing.Dict[
            typing.Any, typing.List[typing.Tuple[NormKT, NormVT]]
        ] = {}
        if values:
            self.extend(values)

    def get_one(
        self, key: KT, default: typing.Optional[NormVT] = None
    ) -> typing.Optional[NormVT]:
        try:
            return self._internal[self._lookup_key(key)][0][1]
        except (KeyError, IndexError):
            return default

    get = get_one

    def get_all(self, key: KT) -> typing.List[NormVT]:
        try:
            return [x[1] for x in self._internal[self._lookup_key(key)]]
        except KeyError:
            return []

    def add(self, key: KT, value: VT) -> None:
        key = self._normalize_key(key)
        items = self._internal.setdefault(self._lookup_key(key), [])
        # All values of one key share the spelling of the first one.
        if items:
            key = items[0][0]
        items.append((key, self._normalize_value(value)))

    def extend(self, items: MultiMappingType) -> None:
        for k, v in items.items() if hasattr(items, "items") else items:
            self.add(k, v)

    def setdefault(self, key: KT, value: VT) -> typing.List[NormVT]:
        if key not in self:
            self.add(key, value)
        return self.get_all(key)

    def keys(self) -> typing.Iterator[NormKT]:
        for items in self._internal.values():
            if items:
                yield items[0][0]

    def values(self) -> typing.Iterator[NormVT]:
        for items in self._internal.values():
            for _, value in items:
                yield value

    def items(self) -> typing.Iterator[typing.Tuple[NormKT, NormVT]]:
        for items in self._internal.values():
            for k, v in items:
                yield k, v

    def copy(self) -> "MultiMapping":
        return type(self)(list(self.items()))

    def __contains__(self, item: KT) -> bool:
        return bool(self._internal.get(self._lookup_key(item), None))

    def __getitem__(self, item: KT) -> NormVT:
        try:
            return self._internal[self._lookup_key(item)][0][1]
        except (KeyError, IndexError):
            raise KeyError(item) from None

    def __setitem__(self, key: KT, value: VT) -> None:
        key = self._normalize_key(key)
        self._internal[self._lookup_key(key)] = [(key, self._normalize_value(value))]

    def __delitem__(self, key: KT) -> None:
        self._internal.pop(self._lookup_key(key), None)

    def __iter__(self) -> typing.Iterator[NormKT]:
        return self.keys()

    def __len__(self) -> int:
        return sum(len(items) for items in self._internal.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiMapping):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def _normalize_key(self, key: KT) -> NormKT:
        return key

    def _normalize_value(self, value: VT) -> NormVT:
        return value

    def _lookup_key(self, key: KT) -> typing.Any:
        return key


class Headers(
    MultiMapping[typing.Union[str, bytes], typing.Union[str, bytes], str, str]
):
    """HTTP header collection. Names are case-insensitive for lookups."""

    def _normalize_key(self, key: typing.Union[str, bytes]) -> str:
        if isinstance(key, bytes):
            key = key.decode("utf-8")
        return key

    def _normalize_value(self, value: typing.Union[str, bytes]) -> str:
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def _lookup_key(self, key: typing.Union[str, bytes]) -> str:
        return self._normalize_key(key).lower()

    def __repr__(self) -> str:
        # Smart repr that switches to list-of-tuple mode when
        # multiple values for one key are detected. Most of the
        # time it's easier to read the dictionary.
        if any(len(x) > 1 for x in self._internal.values()):
            internal_repr = repr([(k, v) for k, v in self.items()])
        else:
            # Note the unpacking within (k, v),
            internal_repr = repr({k: v for (k, v), in self._internal.values()})
        return f"<Headers {internal_repr}>"

    __str__ = __repr__

import sys
import trio
import progressable


async def main(path):
    progress = progressable.TqdmProgress(desc=path)
    body = progressable.ProgressableBody(
        progressable.File.from_path(path),
        progress,
        chunk_size=16384,
    )

    stream = await trio.open_tcp_stream("httpbin.org", 80)
    async with stream:
        # Write the request head by hand, the transport isn't our business.
        lines = [
            b"POST /anything HTTP/1.1",
            b"host: httpbin.org",
            b"connection: close",
        ]
        for k, v in body.headers.items():
            lines.append(f"{k}: {v}".encode())
        if body.content_length is None:
            raise SystemExit("demo only handles bodies with a known length")
        lines.append(f"content-length: {body.content_length}".encode())
        await stream.send_all(b"\r\n".join(lines) + b"\r\n\r\n")

        with body, progress:
            await body.serialize(stream)

        response = bytearray()
        async for chunk in stream:
            response += chunk
    print(response.split(b"\r\n", 1)[0].decode())


trio.run(main, sys.argv[1] if len(sys.argv) > 1 else __file__)

import asyncio
import sys
import time

import pytest

from media_api.services import ExtractorClient
from media_api.services.process import run_process, tail

BIG = 2 * 1024 * 1024

DUMP_METADATA = (
    "import json, sys\n"
    "info = {'id': 'abc', 'title': 'Long Video', 'duration': 60, 'pad': 'a' * %d,\n"
    "        'formats': [{'format_id': '18', 'vcodec': 'avc1', 'acodec': 'mp4a', 'height': 360, 'url': 'https://cdn/18'}]}\n"
    "sys.stdout.write(json.dumps(info))\n"
) % BIG


def python(code: str):
    return [sys.executable, "-c", code]


async def test_single_line_larger_than_stream_buffer():
    result = await run_process(python(f"import sys; sys.stdout.write('x' * {BIG}); sys.stderr.write('y' * {BIG})"))
    assert result.ok
    assert len(result.stdout) == BIG
    assert len(result.stderr) == BIG


async def test_line_callback_sees_each_line():
    seen = []
    code = "import sys; sys.stdout.write('[download] 10%\\r\\n[download] 100%\\nlast')"
    result = await run_process(python(code), on_stdout_line=seen.append)
    assert seen == ["[download] 10%", "[download] 100%", "last"]
    assert result.stdout.endswith("last")


async def test_line_callback_skips_oversized_line():
    seen = []
    code = f"import sys; sys.stdout.write('a' * {BIG} + '\\nnext\\n')"
    result = await run_process(python(code), on_stdout_line=seen.append)
    assert seen == ["next"]
    assert len(result.stdout) == BIG + len("\nnext\n")


async def test_nonzero_exit_is_reported():
    result = await run_process(python("import sys; sys.stderr.write('bad input'); sys.exit(3)"))
    assert result.returncode == 3
    assert not result.ok
    assert result.stderr == "bad input"


async def test_missing_executable():
    with pytest.raises(FileNotFoundError):
        await run_process(["/nonexistent/ffmpeg-binary"])


async def test_cancel_kills_child():
    job = asyncio.ensure_future(run_process(python("import time; time.sleep(30)")))
    await asyncio.sleep(0.2)
    start = time.monotonic()
    job.cancel()
    with pytest.raises(asyncio.CancelledError):
        await job
    assert time.monotonic() - start < 5


async def test_resolve_formats_with_large_metadata_dump():
    client = ExtractorClient(python(DUMP_METADATA))

    info = await client.resolve_formats("https://www.youtube.com/watch?v=abc")

    assert info.title == "Long Video"
    assert [f.id for f in info.formats] == ["18"]


def test_tail():
    assert tail("  short \n") == "short"
    assert tail("x" * 10 + "end", limit=3) == "end"

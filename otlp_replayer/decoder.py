"""
Record decoder - splits a stream of concatenated JSON values.

Export files hold OTLP JSON documents written back to back with no
array wrapper or delimiter. The stream is read in chunks and each
complete value is yielded as soon as it is available.
"""

import codecs
import json
import re
from typing import IO, Iterator

from loguru import logger
from prometheus_client import Counter

from .pipeline import STAGE_ERRORS


RECORDS_DECODED = Counter(
    'otlp_replayer_records_decoded_total',
    'Total JSON records decoded from the input file'
)

CHUNK_SIZE = 64 * 1024

# A decode error this close to the end of the buffer may be a value
# split across two reads rather than a malformed one.
_TAIL_SLACK = 16

_WHITESPACE = re.compile(r"[ \t\n\r]*")


def _might_be_truncated(error: json.JSONDecodeError, buffer_length: int) -> bool:
    if error.msg.startswith("Unterminated string"):
        return True
    return buffer_length - error.pos <= _TAIL_SLACK


def decode_records(stream: IO, chunk_size: int = CHUNK_SIZE) -> Iterator[str]:
    """
    Yield the text of every JSON value in ``stream``, in order.

    Args:
        stream: Binary or text file-like object
        chunk_size: Number of bytes/characters read at a time

    Yields:
        Raw JSON text of one value, exactly as it appeared in the stream

    Decoding stops at end of stream, or at the first malformed value,
    which is logged rather than raised. Invalid UTF-8 is replaced with
    U+FFFD.
    """
    decoder = json.JSONDecoder()
    utf8 = codecs.getincrementaldecoder('utf-8')(errors='replace')
    buffer = ""
    pos = 0
    read_size = chunk_size
    eof = False

    while True:
        pos = _WHITESPACE.match(buffer, pos).end()

        if pos < len(buffer):
            try:
                _, end = decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError as e:
                if eof or not _might_be_truncated(e, len(buffer)):
                    STAGE_ERRORS.labels(stage='decode').inc()
                    logger.error(f"Failed to decode JSON: {e}")
                    return
            else:
                # a value ending exactly at the buffer edge may continue in the next read
                if end < len(buffer) or eof:
                    RECORDS_DECODED.inc()
                    yield buffer[pos:end]
                    pos = end
                    read_size = chunk_size
                    continue
        elif eof:
            logger.debug("Finished reading file")
            return

        try:
            chunk = stream.read(read_size)
        except OSError as e:
            STAGE_ERRORS.labels(stage='decode').inc()
            logger.error(f"Failed to read input: {e}")
            return

        eof = not chunk
        if isinstance(chunk, bytes):
            chunk = utf8.decode(chunk, final=eof)

        # an incomplete value is parsed again from its start, so grow the
        # reads geometrically to keep the total work linear in its size
        if pos < len(buffer):
            read_size *= 2

        buffer = buffer[pos:] + chunk
        pos = 0

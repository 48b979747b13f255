"""Incremental XML tokenizer built on lxml's pull parser."""
from typing import BinaryIO, Collection, Dict, Iterator

from lxml import etree

from pairstream.dispatcher import EventKind, ReaderEvent
from pairstream.errors import StreamReadError

DEFAULT_CHUNK_SIZE = 65536


def _local_name(element) -> str:
    return etree.QName(element).localname


def _local_attributes(element) -> Dict[str, str]:
    return {etree.QName(key).localname: value for key, value in element.attrib.items()}


class XmlEventReader:
    """
    Turns a byte stream into ENTER / TEXT / EXIT notifications.

    TEXT carries the joined descendant text of an element and is produced
    just before its EXIT, only for names listed in ``text_elements``.
    Finished elements are released whenever no text-collecting element is
    open, so the parsed tree never grows with the document.
    """

    def __init__(self, text_elements: Collection[str] = (), chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.text_elements = frozenset(text_elements)
        self.chunk_size = chunk_size
        self._text_depth = 0

    def _new_parser(self):
        return etree.XMLPullParser(
            events=("start", "end"),
            remove_blank_text=True,
            resolve_entities=False,
            no_network=True,
        )

    def iter_events(self, stream: BinaryIO) -> Iterator[ReaderEvent]:
        """Yield notifications for the whole stream.

        Raises StreamReadError on malformed or truncated input, after the
        notifications parsed up to that point have been yielded.
        """
        parser = self._new_parser()
        self._text_depth = 0

        while True:
            try:
                chunk = stream.read(self.chunk_size)
            except OSError as e:
                raise StreamReadError(f"Failed to read input: {e}") from e
            if not chunk:
                break

            try:
                parser.feed(chunk)
            except etree.XMLSyntaxError as e:
                yield from self._drain(parser)
                raise StreamReadError(f"XML read error: {e}") from e
            yield from self._drain(parser)

        try:
            parser.close()
        except etree.XMLSyntaxError as e:
            yield from self._drain(parser)
            raise StreamReadError(f"XML read error: {e}") from e
        yield from self._drain(parser)

    def _drain(self, parser) -> Iterator[ReaderEvent]:
        for action, element in parser.read_events():
            if not isinstance(element.tag, str):
                continue
            name = _local_name(element)

            if action == "start":
                if name in self.text_elements:
                    self._text_depth += 1
                yield ReaderEvent(EventKind.ENTER, name, _local_attributes(element))
                continue

            if name in self.text_elements:
                self._text_depth -= 1
                yield ReaderEvent(EventKind.TEXT, name, text="".join(element.itertext()))
            yield ReaderEvent(EventKind.EXIT, name)

            if self._text_depth == 0:
                self._release(element)

    @staticmethod
    def _release(element):
        element.clear()
        parent = element.getparent()
        if parent is None:
            return
        while element.getprevious() is not None:
            del parent[0]


def iter_events(stream: BinaryIO, text_elements: Collection[str] = (),
                chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[ReaderEvent]:
    """Convenience wrapper around XmlEventReader.iter_events."""
    return XmlEventReader(text_elements, chunk_size).iter_events(stream)

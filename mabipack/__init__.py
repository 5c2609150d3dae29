"""
mabipack — codec for the PACK game-asset container.

A container is one file with three contiguous regions:

- a fixed 0x220-byte header (magic, format constant, version key, counts, sizes)
- the index: one record per entry (length-classed name block, offsets, sizes,
  timestamps)
- the content region: each entry zlib-compressed, then XORed with an MT19937
  keystream seeded from the pack's version key

Pack and extract are strictly sequential. See mabipack.writer and
mabipack.reader for the programmatic API and mabipack.cli for the tool.
"""

__version__ = "1.1.1"

__all__ = [
    "constants",
    "errors",
    "keystream",
    "strblock",
    "header",
    "records",
    "codec",
    "writer",
    "reader",
    "listing",
]

# Programmatic API: mabipack.writer.pack_folder/pack_entries,
# mabipack.reader.extract_all/ContainerReader, and the cmd_* functions in mabipack.cli.

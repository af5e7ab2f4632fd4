"""Address decomposition

splits a word-aligned byte address into (tag, index, offset).  the
low word_off_bits (byte-within-word) are never looked at.

there are two forms of each helper: the get_* functions slice nmigen
Values (for use inside elaborate()) and split_addr / join_line_addr work
on plain python ints (for test benches and the reference model).
"""

from nmigen import Cat


# Return the set index (tag index) for an address
def get_index(cfg, addr):
    return addr[cfg.index_lsb:cfg.tag_lsb]


# Return the word offset within a line for an address
def get_offset(cfg, addr):
    return addr[cfg.offset_lsb:cfg.index_lsb]


# Get the tag value from the address
def get_tag(cfg, addr):
    return addr[cfg.tag_lsb:cfg.addr_wid]


# Return the data-array row (index and offset) for an address
def get_row(cfg, addr):
    return addr[cfg.offset_lsb:cfg.tag_lsb]


# Backing memory word address {tag, index, offset}.  this is the real
# address of the word being transferred, not the base of the block.
def line_addr(offset, index, tag):
    return Cat(offset, index, tag)


def split_addr(cfg, addr):
    """returns (tag, index, offset) of an integer byte address
    """
    offset = (addr >> cfg.offset_lsb) & ((1 << cfg.offset_bits) - 1)
    index = (addr >> cfg.index_lsb) & ((1 << cfg.index_bits) - 1)
    tag = (addr >> cfg.tag_lsb) & ((1 << cfg.tag_bits) - 1)
    return tag, index, offset


def join_line_addr(cfg, tag, index, offset):
    """integer form of line_addr: the word address in backing memory
    """
    return ((tag << (cfg.index_bits + cfg.offset_bits)) |
            (index << cfg.offset_bits) | offset)


def byte_addr(cfg, tag, index, offset=0):
    """rebuild a byte address from its fields
    """
    return join_line_addr(cfg, tag, index, offset) << cfg.word_off_bits

"""CacheConfig

geometry ("pspec") of the L1 data cache.  everything here is fixed at
elaboration time: none of it can be changed once a DCache is built.

Example of layout for 16 sets of 4 32-bit words, 32-bit byte address:

  ..  tag          |index| off | b |
  ..               |     |     |---| WORD_OFF_BITS (2)
  ..               |     |-----|   | OFFSET_BITS   (2)
  ..               |-----|         | INDEX_BITS    (4)
  .. --------------|               | TAG_BITS      (24)
"""

from nmigen.utils import log2_int

# defaults
ADDR_WID = 32     # byte address width
DATA_WID = 32     # word width
NUM_WAYS = 4      # ways per set.  the PLRU tree only handles 4
NUM_SETS = 16     # sets (lines per way)
BLOCK_WORDS = 4   # words per line


def ispow2(x):
    return x > 0 and (1 << log2_int(x, False)) == x


class CacheConfig:
    """CacheConfig - structural parameters of a DCache

    * addr_wid:    width of the byte address from the requester
    * data_wid:    width of a word (and of the backing memory data bus)
    * num_sets:    number of sets, power of 2
    * block_words: words per line, power of 2
    * num_ways:    must be 4
    * registered_lookup: if set, the hit/miss decision is taken one
                   cycle after the request edge, in the CHECK state,
                   rather than in the same cycle (IDLE)
    * trace:       print the geometry when elaborating
    """

    def __init__(self, addr_wid=ADDR_WID, data_wid=DATA_WID,
                 num_sets=NUM_SETS, block_words=BLOCK_WORDS,
                 num_ways=NUM_WAYS, registered_lookup=False, trace=False):
        for name, val in (("addr_wid", addr_wid), ("data_wid", data_wid),
                          ("num_sets", num_sets),
                          ("block_words", block_words),
                          ("num_ways", num_ways)):
            if not isinstance(val, int):
                raise TypeError("%s must be an integer, not %r" % (name, val))
        if num_ways != NUM_WAYS:
            raise ValueError("num_ways must be %d, not %d" %
                             (NUM_WAYS, num_ways))
        if data_wid % 8 or not ispow2(data_wid // 8):
            raise ValueError("data_wid must be a power-of-2 number of "
                             "bytes, not %d bits" % data_wid)
        if not ispow2(num_sets):
            raise ValueError("num_sets must be a power of 2, not %d" %
                             num_sets)
        if not ispow2(block_words):
            raise ValueError("block_words must be a power of 2, not %d" %
                             block_words)

        self.addr_wid = addr_wid
        self.data_wid = data_wid
        self.num_sets = num_sets
        self.block_words = block_words
        self.num_ways = num_ways
        self.registered_lookup = registered_lookup
        self.trace = trace

        self.word_off_bits = log2_int(data_wid // 8)
        self.offset_bits = log2_int(block_words)
        self.index_bits = log2_int(num_sets)
        self.way_bits = log2_int(num_ways)
        self.tag_bits = (addr_wid - self.index_bits - self.offset_bits -
                         self.word_off_bits)
        if self.tag_bits <= 0:
            raise ValueError("addr_wid %d leaves no tag bits for %d sets "
                             "of %d words" % (addr_wid, num_sets,
                                              block_words))

        # address of a word in the backing memory: {tag, index, offset}
        self.line_addr_wid = addr_wid - self.word_off_bits
        # start bits of each address field
        self.offset_lsb = self.word_off_bits
        self.index_lsb = self.offset_lsb + self.offset_bits
        self.tag_lsb = self.index_lsb + self.index_bits

    def __repr__(self):
        return ("CacheConfig(addr_wid=%d, data_wid=%d, num_sets=%d, "
                "block_words=%d, registered_lookup=%s)" %
                (self.addr_wid, self.data_wid, self.num_sets,
                 self.block_words, self.registered_lookup))

    def print_layout(self):
        print("DCache TAG %d IDX %d OFF %d BOFF %d WAYS %d" %
              (self.tag_bits, self.index_bits, self.offset_bits,
               self.word_off_bits, self.num_ways))
        print("offset @: %d-%d" % (self.offset_lsb, self.index_lsb))
        print("index @: %d-%d" % (self.index_lsb, self.tag_lsb))
        print("tag @: %d-%d width %d" % (self.tag_lsb, self.addr_wid,
                                         self.tag_bits))

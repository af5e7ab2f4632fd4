"""CacheSim

transaction-level model of the dcache: same geometry, same pseudo-LRU,
same write-back / write-allocate policy.  it keeps a log of every word
written to and read from backing memory, in order, so that a test can
check the RTL against it transfer by transfer.
"""

from copy import deepcopy

from wbcache.cache.addr import split_addr, join_line_addr
from wbcache.cache.plru import plru_victim, plru_update


class Line:
    def __init__(self, block_words):
        self.tag = 0
        self.valid = False
        self.dirty = False
        self.words = [0] * block_words

    def __repr__(self):
        return "Line(tag=%x valid=%d dirty=%d words=%s)" % \
               (self.tag, self.valid, self.dirty,
                [hex(w) for w in self.words])


class MemSim:
    """word-addressed backing memory.  wraps at its depth, like
    BackingMemory does
    """
    def __init__(self, regwid, addrw, init=None):
        self.regwid = regwid
        depth = 1 << addrw
        if init is None:
            init = [0] * depth
        self.mem = list(init) + [0] * (depth - len(init))

    def ld(self, waddr):
        return self.mem[waddr % len(self.mem)]

    def st(self, waddr, data):
        self.mem[waddr % len(self.mem)] = data & ((1 << self.regwid)-1)


class CacheSim:

    def __init__(self, cfg, mem):
        self.cfg = cfg
        self.mem = mem
        self.lines = [[Line(cfg.block_words) for way in range(cfg.num_ways)]
                      for s in range(cfg.num_sets)]
        self.trees = [0] * cfg.num_sets
        self.writes = [] # (word address, data), in order
        self.reads = []  # word addresses, in order
        self.hits = 0
        self.misses = 0

    def lookup(self, index, tag):
        """lowest-numbered matching way, or None
        """
        for way, line in enumerate(self.lines[index]):
            if line.valid and line.tag == tag:
                return way
        return None

    def evict(self, index, way):
        line = self.lines[index][way]
        for offset, word in enumerate(line.words):
            waddr = join_line_addr(self.cfg, line.tag, index, offset)
            self.writes.append((waddr, word))
            self.mem.st(waddr, word)
        line.dirty = False

    def refill(self, index, way, tag):
        line = self.lines[index][way]
        for offset in range(self.cfg.block_words):
            waddr = join_line_addr(self.cfg, tag, index, offset)
            self.reads.append(waddr)
            line.words[offset] = self.mem.ld(waddr)
        line.tag = tag
        line.valid = True
        line.dirty = False

    def access(self, addr, store=False, data=0):
        """one load or store.  returns (hit, data): for a load the word
        read, for a store the word written
        """
        if addr & ((1 << self.cfg.word_off_bits) - 1):
            raise ValueError("address %x is not word-aligned" % addr)
        tag, index, offset = split_addr(self.cfg, addr)
        way = self.lookup(index, tag)
        hit = way is not None
        if hit:
            self.hits += 1
        else:
            self.misses += 1
            way = plru_victim(self.trees[index])
            victim = self.lines[index][way]
            if victim.valid and victim.dirty:
                self.evict(index, way)
            self.refill(index, way, tag)
        self.trees[index] = plru_update(self.trees[index], way)

        line = self.lines[index][way]
        if store:
            line.words[offset] = data & ((1 << self.cfg.data_wid)-1)
            line.dirty = True
        return hit, line.words[offset]

    def ld(self, addr):
        return self.access(addr)[1]

    def st(self, addr, data):
        self.access(addr, True, data)

    def check_directory(self):
        """no two valid ways of a set may hold the same tag, and a
        dirty line must be valid
        """
        for index, ways in enumerate(self.lines):
            tags = [line.tag for line in ways if line.valid]
            assert len(tags) == len(set(tags)), \
                "set %d holds duplicate tags %s" % (index, tags)
            for way, line in enumerate(ways):
                assert line.valid or not line.dirty, \
                    "set %d way %d dirty but not valid" % (index, way)

    def snapshot(self):
        return deepcopy(self.lines)

# data array for one way: num_sets * block_words rows of one word each

from nmigen import Elaboratable, Signal, Array, Module
from nmutil.util import Display


class CacheRam(Elaboratable):
    """CacheRam

    * read is asynchronous: rd_data_o follows rd_addr in the same cycle,
      which is what lets a hit complete in the cycle it is seen.
    * write is synchronous, one whole word, when wr_en is set.
    """

    def __init__(self, ROW_BITS=6, WIDTH=32, TRACE=False, name=None):
        self.ROW_BITS = ROW_BITS
        self.WIDTH = WIDTH
        self.TRACE = TRACE
        self.name = name or "ram"
        self.rd_addr   = Signal(ROW_BITS)
        self.rd_data_o = Signal(WIDTH)
        self.wr_en     = Signal()
        self.wr_addr   = Signal(ROW_BITS)
        self.wr_data   = Signal(WIDTH)

        SIZE = 2**ROW_BITS
        self.ram = Array(Signal(WIDTH, name="%s_row%d" % (self.name, i))
                         for i in range(SIZE))

    def elaborate(self, platform):
        m = Module()
        comb, sync = m.d.comb, m.d.sync

        with m.If(self.wr_en):
            sync += self.ram[self.wr_addr].eq(self.wr_data)
            if self.TRACE:
                sync += Display(self.name + " write a: %x dat: %x",
                                self.wr_addr, self.wr_data)
        comb += self.rd_data_o.eq(self.ram[self.rd_addr])

        return m

    def __iter__(self):
        yield self.rd_addr
        yield self.rd_data_o
        yield self.wr_en
        yield self.wr_addr
        yield self.wr_data

    def ports(self):
        return list(self)

from nmigen import Module, Elaboratable, Memory, Signal
from nmigen.utils import log2_int


class BackingMemory(Elaboratable):
    """BackingMemory - single-ported word memory behind the dcache

    * re/we are mutually exclusive (the dcache never raises both)
    * rd_data is registered: it is valid the cycle after re, at the
      address presented alongside re
    * writes take effect at the clock edge ending the we cycle
    * addresses wrap at depth: only the low log2(depth) bits are used
    """

    def __init__(self, width=32, addrw=10, init=None, memory=None):
        if memory is None:
            depth = 1 << addrw
            if init is True:
                init = range(0, depth*2, 2)
            memory = Memory(width=width, depth=depth, init=init)
        if not isinstance(memory, Memory):
            raise TypeError("Memory {!r} is not a Memory"
                            .format(memory))
        self.mem = memory
        self.width = memory.width
        self.depth = memory.depth
        self.addrw = log2_int(memory.depth, need_pow2=False)

        self.re = Signal()
        self.we = Signal()
        self.addr = Signal(self.addrw)
        self.wr_data = Signal(self.width)
        self.rd_data = Signal(self.width)

    def elaborate(self, platform):
        m = Module()
        comb = m.d.comb

        m.submodules.rdport = rdport = self.mem.read_port(transparent=False)
        m.submodules.wrport = wrport = self.mem.write_port()

        comb += rdport.addr.eq(self.addr)
        comb += rdport.en.eq(self.re)
        comb += self.rd_data.eq(rdport.data)

        comb += wrport.addr.eq(self.addr)
        comb += wrport.data.eq(self.wr_data)
        comb += wrport.en.eq(self.we)

        return m

    def __iter__(self):
        yield self.re
        yield self.we
        yield self.addr
        yield self.wr_data
        yield self.rd_data

    def ports(self):
        return list(self)

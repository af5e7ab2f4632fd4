"""DCacheTop

a DCache with its BackingMemory wired up, so that a test bench only
has to drive the requester side.
"""

from nmigen import Module, Elaboratable
from nmigen.back import rtlil

from wbcache.config.cache import CacheConfig
from wbcache.cache.dcache import DCache
from wbcache.mem.testmem import BackingMemory


class DCacheTop(Elaboratable):

    def __init__(self, cfg=None, mem_addrw=10, init=None):
        if cfg is None:
            cfg = CacheConfig()
        self.cfg = cfg
        self.dcache = DCache(cfg)
        self.mem = BackingMemory(width=cfg.data_wid, addrw=mem_addrw,
                                 init=init)
        # requester side passes straight through
        self.d_in = self.dcache.d_in
        self.d_out = self.dcache.d_out

    def elaborate(self, platform):
        m = Module()
        comb = m.d.comb
        dcache, mem = self.dcache, self.mem

        m.submodules.dcache = dcache
        m.submodules.mem = mem

        comb += mem.re.eq(dcache.mem_out.re)
        comb += mem.we.eq(dcache.mem_out.we)
        comb += mem.addr.eq(dcache.mem_out.addr)
        comb += mem.wr_data.eq(dcache.mem_out.data)
        comb += dcache.mem_in.data.eq(mem.rd_data)

        return m

    def ports(self):
        return list(self.d_in.fields.values()) + \
               list(self.d_out.fields.values())


if __name__ == '__main__':
    dut = DCacheTop(CacheConfig(trace=True))
    vl = rtlil.convert(dut, ports=dut.ports())
    with open("test_dcache_top.il", "w") as f:
        f.write(vl)

"""mem_types

port bundles between the processor, the dcache and the backing memory.
widths come from a CacheConfig.
"""
from nmutil.iocontrol import RecordObject
from nmigen import Signal


class ProcToDCacheType(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.req           = Signal() # request active (level)
        self.store         = Signal() # this is a store
        self.addr          = Signal(cfg.addr_wid)
        self.data          = Signal(cfg.data_wid) # store data


class DCacheToProcType(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.data          = Signal(cfg.data_wid) # valid with ready, loads
        self.ready         = Signal() # one-cycle completion pulse
        self.stall         = Signal() # hold addr/data, do not advance
        self.hit           = Signal() # debug only
        self.miss          = Signal() # debug only


class DCacheToMemType(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.re            = Signal()
        self.we            = Signal()
        self.addr          = Signal(cfg.line_addr_wid) # word address
        self.data          = Signal(cfg.data_wid)


class MemToDCacheType(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.data          = Signal(cfg.data_wid) # the cycle after re


class DCacheDebugType(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.wr_addr       = Signal(cfg.line_addr_wid)
        self.wr_data       = Signal(cfg.data_wid)
        self.rd_addr       = Signal(cfg.line_addr_wid)
        self.rd_data       = Signal(cfg.data_wid)

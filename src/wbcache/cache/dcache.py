"""DCache

blocking 4-way set-associative write-back, write-allocate data cache
between one in-order core and a single-ported backing memory.

* a request is recognised on the rising edge of d_in.req only.  the
  requester must drop req for at least one cycle between transactions.
* a hit completes in the cycle it is seen (ready is combinatorial).
* a miss writes back the victim (if dirty) one word every two cycles
  (EVICT, EVICT_WAIT), then refills it one word every two cycles
  (REFILL, REFILL_WAIT), then replays the access (RESPOND).
* backing memory has a fixed one-cycle read latency and no acknowledge.
  if it cannot keep up, that is outside the contract: there is no
  timeout and stall simply stays high.

comb logic is the "decide" half of a cycle (hit vector, victim, next
state, bus outputs), sync is the one commit per clock.
"""

from enum import Enum, unique

from nmigen import Module, Signal, Elaboratable, Cat, Array, Const, Shape
from nmigen.back import rtlil

from nmutil.iocontrol import RecordObject

from wbcache.config.cache import CacheConfig
from wbcache.cache.addr import get_index, get_offset, get_tag, line_addr
from wbcache.cache.cache_ram import CacheRam
from wbcache.cache.hit import HitDetect, read_tag
from wbcache.cache.plru import PLRU4
from wbcache.cache.mem_types import (ProcToDCacheType, DCacheToProcType,
                                     DCacheToMemType, MemToDCacheType,
                                     DCacheDebugType)


# Cache state machine
@unique
class State(Enum):
    IDLE        = 0 # waiting for a request edge, in-cycle hit processing
    CHECK       = 1 # registered hit/miss decision (registered_lookup)
    EVICT       = 2 # write one word of the dirty victim
    EVICT_WAIT  = 3 # memory write latency, advance word counter
    REFILL      = 4 # read one word of the new line
    REFILL_WAIT = 5 # capture returned word, advance word counter
    RESPOND     = 6 # install tag, replay the access, ready


# Stage 0 register: the latched request, for the CHECK path
class RegStage0(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.store = Signal()
        self.addr  = Signal(cfg.addr_wid)
        self.data  = Signal(cfg.data_wid)


# Pending-miss record.  captured once per miss, owned by the sequencer
class MissRecord(RecordObject):
    def __init__(self, cfg, name=None):
        super().__init__(name=name)
        self.way        = Signal(cfg.way_bits)
        self.index      = Signal(cfg.index_bits)
        self.evict_tag  = Signal(cfg.tag_bits)
        self.reload_tag = Signal(cfg.tag_bits)
        self.counter    = Signal(range(cfg.block_words))
        # the access to replay once the line is in
        self.store      = Signal()
        self.offset     = Signal(cfg.offset_bits)
        self.data       = Signal(cfg.data_wid)


def CacheTagArray(cfg):
    return Array(Signal(cfg.tag_bits * cfg.num_ways, name="cachetag_%d" % x)
                 for x in range(cfg.num_sets))


def CacheValidBitsArray(cfg):
    return Array(Signal(cfg.num_ways, name="cachevalid_%d" % x)
                 for x in range(cfg.num_sets))


def CacheDirtyBitsArray(cfg):
    return Array(Signal(cfg.num_ways, name="cachedirty_%d" % x)
                 for x in range(cfg.num_sets))


# PLRU output interface
def PLRUOut(cfg):
    return Array(Signal(cfg.way_bits, name="plru_out%d" % x)
                 for x in range(cfg.num_sets))


# packed trace word: state, hit, miss, stall, ready, re, we, word counter
def LOG_WID(cfg):
    return Shape.cast(State).width + 6 + cfg.offset_bits


class DCache(Elaboratable):
    """Set associative dcache, write-back, write-allocate, blocking
    """
    def __init__(self, cfg=None):
        if cfg is None:
            cfg = CacheConfig()
        self.cfg = cfg

        self.d_in    = ProcToDCacheType(cfg, "d_in")
        self.d_out   = DCacheToProcType(cfg, "d_out")

        self.mem_out = DCacheToMemType(cfg, "mem_out")
        self.mem_in  = MemToDCacheType(cfg, "mem_in")

        self.dbg     = DCacheDebugType(cfg, "dbg")
        self.log_out = Signal(LOG_WID(cfg))

        # visible for test benches, never outputs
        self.state        = Signal(State)
        self.cache_tags   = CacheTagArray(cfg)
        self.cache_valids = CacheValidBitsArray(cfg)
        self.cache_dirty  = CacheDirtyBitsArray(cfg)
        self.plrus = [PLRU4() for i in range(cfg.num_sets)]
        self.rams = [CacheRam(ROW_BITS=cfg.index_bits + cfg.offset_bits,
                              WIDTH=cfg.data_wid, TRACE=cfg.trace,
                              name="way%d" % i)
                     for i in range(cfg.num_ways)]

    def maybe_plrus(self, m, plru_victim, touch, touch_way, touch_index):
        """Generate PLRUs, one per set.  only "touch" updates a tree:
        reading the victim never does.
        """
        comb = m.d.comb

        for i, plru in enumerate(self.plrus):
            setattr(m.submodules, "plru%d" % i, plru)
            comb += plru.acc_en.eq(touch & (touch_index == i))
            comb += plru.acc_i.eq(touch_way)
            comb += plru_victim[i].eq(plru.lru_o)

    def set_way_bit(self, m, bits, index, way, value):
        """sync-write one per-way bit of a directory row
        """
        comb, sync = m.d.comb, m.d.sync
        cv = Signal(self.cfg.num_ways)
        comb += cv.eq(bits[index])
        comb += cv.bit_select(way, 1).eq(value)
        sync += bits[index].eq(cv)

    def write_tag(self, m, index, way, tag):
        comb, sync = m.d.comb, m.d.sync
        cfg = self.cfg
        ct = Signal(cfg.tag_bits * cfg.num_ways)
        comb += ct.eq(self.cache_tags[index])
        comb += ct.word_select(way, cfg.tag_bits).eq(tag)
        sync += self.cache_tags[index].eq(ct)

    def dcache_decide(self, m, hitdet, req_store, req_data, req_index,
                      req_tag, req_offset, replace_way, r1,
                      touch, touch_way, touch_index, st_hit):
        """hit/miss decision, shared by IDLE and CHECK.

        hit:  complete now.  ready, PLRU touch, store word + dirty.
        miss: capture the pending-miss record and start the sequencer.
        """
        comb, sync = m.d.comb, m.d.sync
        d_out = self.d_out

        valid_set = Signal(self.cfg.num_ways)
        dirty_set = Signal(self.cfg.num_ways)
        comb += valid_set.eq(self.cache_valids[req_index])
        comb += dirty_set.eq(self.cache_dirty[req_index])

        with m.If(hitdet.is_hit):
            comb += d_out.hit.eq(1)
            comb += d_out.ready.eq(1)
            comb += touch.eq(1)
            comb += touch_way.eq(hitdet.hit_way)
            comb += touch_index.eq(req_index)
            with m.If(req_store):
                comb += st_hit.eq(1)
                self.set_way_bit(m, self.cache_dirty, req_index,
                                 hitdet.hit_way, 1)
            sync += self.state.eq(State.IDLE)

        with m.Else():
            comb += d_out.miss.eq(1)
            victim_dirty = Signal()
            comb += victim_dirty.eq(valid_set.bit_select(replace_way, 1) &
                                    dirty_set.bit_select(replace_way, 1))

            sync += r1.way.eq(replace_way)
            sync += r1.index.eq(req_index)
            sync += r1.evict_tag.eq(read_tag(self.cfg, replace_way,
                                             hitdet.tag_set))
            sync += r1.reload_tag.eq(req_tag)
            sync += r1.counter.eq(0)
            sync += r1.store.eq(req_store)
            sync += r1.offset.eq(req_offset)
            sync += r1.data.eq(req_data)

            with m.If(victim_dirty):
                sync += self.state.eq(State.EVICT)
            with m.Else():
                sync += self.state.eq(State.REFILL)

    def dcache_log(self, m, ctr):
        sync = m.d.sync
        d_out, mem_out = self.d_out, self.mem_out
        sync += self.log_out.eq(Cat(self.state, d_out.hit, d_out.miss,
                                    d_out.stall, d_out.ready,
                                    mem_out.re, mem_out.we, ctr))

    def dcache_debug(self, m, ctr):
        """last write and last read seen on the memory side.  these are
        projections only: nothing in the controller reads them.
        """
        sync = m.d.sync
        mem_out, mem_in, dbg = self.mem_out, self.mem_in, self.dbg

        with m.If(mem_out.we):
            sync += dbg.wr_addr.eq(mem_out.addr)
            sync += dbg.wr_data.eq(mem_out.data)
        with m.If(mem_out.re):
            sync += dbg.rd_addr.eq(mem_out.addr)
        with m.If(self.state == State.REFILL_WAIT):
            sync += dbg.rd_data.eq(mem_in.data)

    def elaborate(self, platform):
        m = Module()
        comb, sync = m.d.comb, m.d.sync
        cfg = self.cfg
        d_in, d_out = self.d_in, self.d_out
        mem_out, mem_in = self.mem_out, self.mem_in

        if cfg.trace:
            cfg.print_layout()

        r0 = RegStage0(cfg, "r0")
        r1 = MissRecord(cfg, "r1")

        # word counter, trimmed to the offset field
        ctr = r1.counter[:cfg.offset_bits]
        last_word = Const(cfg.block_words - 1, len(r1.counter))

        # one-shot request event: rising edge of d_in.req
        req_prev = Signal()
        new_req = Signal()
        sync += req_prev.eq(d_in.req)
        comb += new_req.eq(d_in.req & ~req_prev)

        # the request being looked up: straight from the requester in
        # IDLE, or from the stage 0 latch in CHECK
        req_store = Signal()
        req_addr = Signal(cfg.addr_wid)
        req_data = Signal(cfg.data_wid)
        if cfg.registered_lookup:
            comb += req_store.eq(r0.store)
            comb += req_addr.eq(r0.addr)
            comb += req_data.eq(r0.data)
        else:
            comb += req_store.eq(d_in.store)
            comb += req_addr.eq(d_in.addr)
            comb += req_data.eq(d_in.data)

        req_index = Signal(cfg.index_bits)
        req_tag = Signal(cfg.tag_bits)
        req_offset = Signal(cfg.offset_bits)
        comb += req_index.eq(get_index(cfg, req_addr))
        comb += req_tag.eq(get_tag(cfg, req_addr))
        comb += req_offset.eq(get_offset(cfg, req_addr))

        do_lookup = Signal()

        # hit detection against the requested set
        m.submodules.hitdet = hitdet = HitDetect(cfg)
        comb += hitdet.go.eq(do_lookup)
        comb += hitdet.req_tag.eq(req_tag)
        comb += hitdet.tag_set.eq(self.cache_tags[req_index])
        comb += hitdet.valid_set.eq(self.cache_valids[req_index])

        # replacement
        touch = Signal()
        touch_way = Signal(cfg.way_bits)
        touch_index = Signal(cfg.index_bits)
        plru_victim = PLRUOut(cfg)
        replace_way = Signal(cfg.way_bits)
        self.maybe_plrus(m, plru_victim, touch, touch_way, touch_index)
        comb += replace_way.eq(plru_victim[req_index])

        # data array read port: which way, which row
        rd_way = Signal(cfg.way_bits)
        rd_row = Signal(cfg.index_bits + cfg.offset_bits)
        cache_out_row = Signal(cfg.data_wid)
        ram_out = Array(Signal(cfg.data_wid, name="cache_out%d" % i)
                        for i in range(cfg.num_ways))

        with m.If(do_lookup):
            comb += rd_way.eq(hitdet.hit_way)
            comb += rd_row.eq(Cat(req_offset, req_index))
        with m.Elif(self.state == State.RESPOND):
            comb += rd_way.eq(r1.way)
            comb += rd_row.eq(Cat(r1.offset, r1.index))
        with m.Else():
            comb += rd_way.eq(r1.way)
            comb += rd_row.eq(Cat(ctr, r1.index))
        comb += cache_out_row.eq(ram_out[rd_way])

        # data array write port, one source per state (never two at once)
        st_hit = Signal()
        wr_row = Signal(cfg.index_bits + cfg.offset_bits)
        wr_data = Signal(cfg.data_wid)
        refill_wr = Signal()
        respond_wr = Signal()
        with m.If(st_hit):
            comb += wr_row.eq(Cat(req_offset, req_index))
            comb += wr_data.eq(req_data)
        with m.Elif(refill_wr):
            comb += wr_row.eq(Cat(ctr, r1.index))
            comb += wr_data.eq(mem_in.data)
        with m.Else():
            comb += wr_row.eq(Cat(r1.offset, r1.index))
            comb += wr_data.eq(r1.data)

        for i, way in enumerate(self.rams):
            setattr(m.submodules, "cacheram_%d" % i, way)
            do_write = Signal(name="do_write_%d" % i)
            comb += way.rd_addr.eq(rd_row)
            comb += ram_out[i].eq(way.rd_data_o)
            comb += way.wr_addr.eq(wr_row)
            comb += way.wr_data.eq(wr_data)
            with m.If(st_hit):
                comb += do_write.eq(hitdet.hit_way == i)
            with m.Elif(refill_wr | respond_wr):
                comb += do_write.eq(r1.way == i)
            comb += way.wr_en.eq(do_write)

        # loads return the cached word, stores echo what was written
        with m.If(d_out.ready):
            with m.If(self.state == State.RESPOND):
                with m.If(r1.store):
                    comb += d_out.data.eq(r1.data)
                with m.Else():
                    comb += d_out.data.eq(cache_out_row)
            with m.Elif(req_store):
                comb += d_out.data.eq(req_data)
            with m.Else():
                comb += d_out.data.eq(cache_out_row)

        # backpressure: everything except a completing cycle
        busy = Signal()
        comb += busy.eq((self.state != State.IDLE) | new_req)
        comb += d_out.stall.eq(busy & ~d_out.ready)

        # Main state machine
        with m.Switch(self.state):

            with m.Case(State.IDLE):
                with m.If(new_req):
                    if cfg.registered_lookup:
                        sync += r0.store.eq(d_in.store)
                        sync += r0.addr.eq(d_in.addr)
                        sync += r0.data.eq(d_in.data)
                        sync += self.state.eq(State.CHECK)
                    else:
                        comb += do_lookup.eq(1)
                        self.dcache_decide(m, hitdet, req_store, req_data,
                                           req_index, req_tag, req_offset,
                                           replace_way, r1, touch, touch_way,
                                           touch_index, st_hit)

            with m.Case(State.CHECK):
                comb += do_lookup.eq(1)
                self.dcache_decide(m, hitdet, req_store, req_data,
                                   req_index, req_tag, req_offset,
                                   replace_way, r1, touch, touch_way,
                                   touch_index, st_hit)

            with m.Case(State.EVICT):
                comb += mem_out.we.eq(1)
                comb += mem_out.addr.eq(line_addr(ctr, r1.index,
                                                  r1.evict_tag))
                comb += mem_out.data.eq(cache_out_row)
                sync += self.state.eq(State.EVICT_WAIT)

            with m.Case(State.EVICT_WAIT):
                with m.If(r1.counter == last_word):
                    sync += r1.counter.eq(0)
                    sync += self.state.eq(State.REFILL)
                with m.Else():
                    sync += r1.counter.eq(r1.counter + 1)
                    sync += self.state.eq(State.EVICT)

            with m.Case(State.REFILL):
                comb += mem_out.re.eq(1)
                comb += mem_out.addr.eq(line_addr(ctr, r1.index,
                                                  r1.reload_tag))
                sync += self.state.eq(State.REFILL_WAIT)

            with m.Case(State.REFILL_WAIT):
                comb += refill_wr.eq(1)
                # line is neither valid nor dirty until it is complete
                self.set_way_bit(m, self.cache_dirty, r1.index, r1.way, 0)
                self.set_way_bit(m, self.cache_valids, r1.index, r1.way, 0)
                with m.If(r1.counter == last_word):
                    sync += self.state.eq(State.RESPOND)
                with m.Else():
                    sync += r1.counter.eq(r1.counter + 1)
                    sync += self.state.eq(State.REFILL)

            with m.Case(State.RESPOND):
                self.write_tag(m, r1.index, r1.way, r1.reload_tag)
                self.set_way_bit(m, self.cache_valids, r1.index, r1.way, 1)
                with m.If(r1.store):
                    comb += respond_wr.eq(1)
                    self.set_way_bit(m, self.cache_dirty, r1.index,
                                     r1.way, 1)
                comb += touch.eq(1)
                comb += touch_way.eq(r1.way)
                comb += touch_index.eq(r1.index)
                comb += d_out.ready.eq(1)
                sync += r1.counter.eq(0)
                sync += self.state.eq(State.IDLE)

        self.dcache_debug(m, ctr)
        self.dcache_log(m, ctr)

        return m

    def __iter__(self):
        for rec in (self.d_in, self.d_out, self.mem_out, self.mem_in,
                    self.dbg):
            yield from rec.fields.values()
        yield self.log_out

    def ports(self):
        return list(self)


if __name__ == '__main__':
    dut = DCache(CacheConfig(trace=True))
    vl = rtlil.convert(dut, ports=dut.ports())
    with open("test_dcache.il", "w") as f:
        f.write(vl)

from nmigen import Elaboratable, Module, Signal, Cat


# Read a tag from a tag memory row
def read_tag(cfg, way, tagset):
    return tagset.word_select(way, cfg.tag_bits)


class HitDetect(Elaboratable):
    """HitDetect

    compares the requested tag against every way of one set.

    * hit_vec_o has one bit per way: valid[way] & (tag[way] == req_tag)
    * is_hit is the OR of hit_vec_o
    * hit_way is the lowest-numbered way whose bit is set.  two ways
      holding the same tag is a directory bug, the priority only keeps
      the outcome deterministic if it ever happens.
    """

    def __init__(self, cfg):
        self.cfg = cfg
        self.go = Signal()
        self.req_tag = Signal(cfg.tag_bits)
        self.tag_set = Signal(cfg.tag_bits * cfg.num_ways)
        self.valid_set = Signal(cfg.num_ways)

        self.hit_vec_o = Signal(cfg.num_ways)
        self.is_hit = Signal()
        self.hit_way = Signal(cfg.way_bits)

    def elaborate(self, platform):
        m = Module()
        comb = m.d.comb
        cfg = self.cfg

        hits = []
        for i in range(cfg.num_ways):
            is_tag_hit = Signal(name="is_tag_hit_%d" % i)
            comb += is_tag_hit.eq(self.go & self.valid_set[i] &
                                  (read_tag(cfg, i, self.tag_set) ==
                                   self.req_tag))
            hits.append(is_tag_hit)
        comb += self.hit_vec_o.eq(Cat(*hits))
        comb += self.is_hit.eq(self.hit_vec_o.bool())

        # priority: last assignment wins, so walk from the top way down
        for i in reversed(range(cfg.num_ways)):
            with m.If(hits[i]):
                comb += self.hit_way.eq(i)

        return m

    def __iter__(self):
        yield self.go
        yield self.req_tag
        yield self.tag_set
        yield self.valid_set
        yield self.hit_vec_o
        yield self.is_hit
        yield self.hit_way

    def ports(self):
        return list(self)

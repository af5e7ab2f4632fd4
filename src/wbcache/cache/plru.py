# 3-bit tree pseudo-LRU for a 4-way set

from nmigen import Elaboratable, Signal, Module, Mux, Cat
from nmigen.back import rtlil


# tree bit positions
TREE_A = 0  # root: 0 picks the right half (ways 2/3), 1 the left (0/1)
TREE_B = 1  # left leaf
TREE_C = 2  # right leaf


def plru_victim(tree):
    """returns the victim way for an integer tree state.  does not
    alter the tree: selection can be repeated as often as needed.
    """
    a = (tree >> TREE_A) & 1
    b = (tree >> TREE_B) & 1
    c = (tree >> TREE_C) & 1
    if not a:
        return 2 if c else 3
    return 0 if b else 1


def plru_update(tree, way):
    """returns the new tree state after an access to way
    """
    if way in (0, 1):
        tree &= ~(1 << TREE_A)
        if way == 1:
            tree |= (1 << TREE_B)
        else:
            tree &= ~(1 << TREE_B)
    else:
        tree |= (1 << TREE_A)
        if way == 3:
            tree |= (1 << TREE_C)
        else:
            tree &= ~(1 << TREE_C)
    return tree & 0b111


class PLRU4(Elaboratable):
    """ PLRU4 - Pseudo Least Recently Used, 4 ways, one set

        tree (A picks the half, B/C pick within it):

                  A
                 / \\
                B   C
               / \\ / \\
              0  1 2  3

        * lru_o is combinatorial from the current tree: it is the
          victim and reading it never changes anything.
        * acc_en/acc_i mark way acc_i as most-recently-used, taking
          effect on the next clock.
    """

    def __init__(self):
        self.acc_en = Signal()
        self.acc_i = Signal(2)
        self.lru_o = Signal(2)
        self.tree_o = Signal(3)

    def elaborate(self, platform):
        m = Module()
        comb, sync = m.d.comb, m.d.sync

        a = Signal()
        b = Signal()
        c = Signal()
        tree = Cat(a, b, c)
        comb += self.tree_o.eq(tree)

        # victim selection
        with m.If(~a):
            comb += self.lru_o.eq(Mux(c, 2, 3))
        with m.Else():
            comb += self.lru_o.eq(Mux(b, 0, 1))

        # update on access
        with m.If(self.acc_en):
            with m.If(~self.acc_i[1]):
                sync += a.eq(0)
                sync += b.eq(self.acc_i[0])
            with m.Else():
                sync += a.eq(1)
                sync += c.eq(self.acc_i[0])

        return m

    def __iter__(self):
        yield self.acc_en
        yield self.acc_i
        yield self.lru_o
        yield self.tree_o

    def ports(self):
        return list(self)


if __name__ == '__main__':
    dut = PLRU4()
    vl = rtlil.convert(dut, ports=dut.ports())
    with open("test_plru4.il", "w") as f:
        f.write(vl)

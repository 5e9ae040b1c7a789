import pytest

from nlcg.communicator import CommKind, Communicator
from nlcg.layout import Block, BlockLayout, Map, SlabLayoutV


def test_single_block_slab():
    layout = SlabLayoutV([Block(0, 0, 200, 20)])
    assert layout.nrows() == 200
    assert layout.ncols() == 20


def test_stacked_blocks_sum_rows():
    blocks = [Block(0, 0, 100, 20), Block(100, 0, 50, 20)]
    layout = SlabLayoutV(blocks)
    assert layout.nrows() == sum(b.nrows for b in blocks)
    assert layout.ncols() == blocks[0].ncols
    assert layout.blocks == blocks


def test_explicit_ncols_must_match():
    with pytest.raises(ValueError):
        SlabLayoutV([Block(0, 0, 10, 5)], ncols=6)


def test_mismatched_width_rejected():
    with pytest.raises(ValueError):
        SlabLayoutV([Block(0, 0, 10, 5), Block(10, 0, 10, 4)])


def test_nonzero_column_offset_rejected():
    with pytest.raises(ValueError):
        SlabLayoutV([Block(0, 3, 10, 5)])


def test_empty_blocks_without_width_rejected():
    with pytest.raises(ValueError):
        SlabLayoutV([])


def test_default_slab_is_unset():
    layout = SlabLayoutV()
    assert layout.nrows() == -1
    assert layout.ncols() == -1


def test_block_layout_has_no_shape():
    layout = BlockLayout([Block(0, 0, 2, 2)])
    with pytest.raises(RuntimeError):
        layout.nrows()
    with pytest.raises(RuntimeError):
        layout.ncols()


def test_map_delegates_to_layout():
    m = Map(Communicator(), SlabLayoutV([Block(0, 0, 20, 20)]))
    assert m.nrows() == 20
    assert m.ncols() == 20
    assert m.is_local()


def test_map_on_null_communicator():
    m = Map(Communicator(CommKind.NULL), SlabLayoutV([Block(0, 0, 3, 3)]))
    with pytest.raises(RuntimeError):
        m.is_local()
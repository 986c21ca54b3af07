import typing

from graph_mapper.identity import TempId
from graph_mapper.storages.sqlalchemy.writing.allocation import allocate_sequence_ids, group_by_sequence
from graph_mapper.tempids import SequenceAllocation


def test_empty_allocation_does_no_io(fake_engine) -> None:
    engine = fake_engine()

    with engine.connect() as connection:
        assert allocate_sequence_ids(connection, {}) == {}

    assert engine.executed == []


def test_allocates_batch_in_one_round_trip(fake_engine) -> None:
    tempids = [TempId() for _ in range(25)]
    engine = fake_engine(lambda statement, parameters: [{"batch": 0, "id": 100 + n} for n in range(25)])

    with engine.connect() as connection:
        allocated = allocate_sequence_ids(
            connection, {tempid: SequenceAllocation("main", "products_id_seq") for tempid in tempids}
        )

    assert len(engine.executed) == 1
    assert "nextval('products_id_seq')" in engine.statements[0]
    assert "generate_series" in engine.statements[0]
    assert [allocated[tempid] for tempid in tempids] == list(range(100, 125))
    assert len(set(allocated.values())) == 25


def test_allocates_several_sequences_in_one_round_trip(fake_engine) -> None:
    products = [TempId(), TempId()]
    category = TempId()
    sequence_ids = {
        products[0]: SequenceAllocation("main", "products_id_seq"),
        category: SequenceAllocation("main", "categories_id_seq"),
        products[1]: SequenceAllocation("main", "products_id_seq"),
    }
    # rows of different batches may come back interleaved
    rows: typing.List[dict] = [{"batch": 0, "id": 7}, {"batch": 1, "id": 50}, {"batch": 0, "id": 8}]
    engine = fake_engine(lambda statement, parameters: rows)

    with engine.connect() as connection:
        allocated = allocate_sequence_ids(connection, sequence_ids)

    assert len(engine.executed) == 1
    assert "UNION ALL" in engine.statements[0]
    assert allocated == {products[0]: 7, products[1]: 8, category: 50}


def test_groups_tempids_by_sequence() -> None:
    first, second, third = TempId(), TempId(), TempId()

    grouped = group_by_sequence(
        {
            first: SequenceAllocation("main", "a_id_seq"),
            second: SequenceAllocation("main", "b_id_seq"),
            third: SequenceAllocation("main", "a_id_seq"),
        }
    )

    assert grouped == {"a_id_seq": [first, third], "b_id_seq": [second]}

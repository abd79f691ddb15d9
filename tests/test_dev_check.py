from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockroom import dev_check


def test_dev_check_round_trip(capsys):
    engine = create_engine("sqlite:///:memory:", future=True)
    Session = sessionmaker(bind=engine, future=True)

    first = dev_check.main(session_factory=Session)
    second = dev_check.main(session_factory=Session)

    assert [it.code for it in first.items] == ["DEV-001"]
    assert [it.code for it in second.items] == ["DEV-001", "DEV-002"]
    assert second.discrepancies() == {}
    assert second.get_item(1).quantity == 3
    out = capsys.readouterr().out
    assert "Discrepancies: none" in out

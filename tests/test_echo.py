from beniocord.ingest.echo import EchoSuppressor


def test_pending_echo_is_consumed_once():
    echo = EchoSuppressor()
    echo.remember("55")

    assert echo.consume("55") is True
    assert echo.consume("55") is False


def test_unknown_id_is_not_an_echo():
    echo = EchoSuppressor()
    echo.remember("55")

    assert echo.consume("56") is False
    assert "55" in echo


def test_capacity_forgets_oldest_first():
    echo = EchoSuppressor(capacity=3)
    for mid in ("1", "2", "3", "4"):
        echo.remember(mid)

    assert len(echo) == 3
    assert "1" not in echo
    assert all(mid in echo for mid in ("2", "3", "4"))


def test_remembering_again_refreshes_position():
    echo = EchoSuppressor(capacity=2)
    echo.remember("1")
    echo.remember("2")
    echo.remember("1")
    echo.remember("3")

    assert "1" in echo
    assert "2" not in echo

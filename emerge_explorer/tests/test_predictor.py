import pytest
from decimal import Decimal

from emerge_explorer.parser.base_parser import SessionType
from emerge_explorer.parser.parsing_engine import LogParsingEngine
from emerge_explorer.parser.pretend_parser import PretendParser
from emerge_explorer.predict.predictor import Predictor, batch_total
from emerge_explorer.scanner.log_core import Atom
from emerge_explorer.sessions.session_tracker import Session, SessionStatus
from emerge_explorer.stats.analyzer import PackageStats

FOO = Atom("app-misc", "foo", "1.0")
BAR = Atom("app-misc", "bar", "2.0")
NEW = Atom("app-misc", "new", "0.1")


def make_stats(*durations, decay=0.5):
    stats = PackageStats(decay=decay)
    for duration in durations:
        stats.fold(duration)
    return stats


@pytest.fixture
def predictor():
    return Predictor({FOO: make_stats(40), BAR: make_stats(100, 200, 400)})


def open_session(atom, start, session_type=SessionType.MERGE):
    return Session(session_type, atom, "1 of 1", start, status=SessionStatus.UNTERMINATED)


def test_known_atom_without_start(predictor):
    prediction = predictor.predict_atom(FOO)
    assert prediction.estimated_total == 40.0
    assert prediction.estimated_remaining is None
    assert prediction.basis == 1
    assert prediction.known


def test_in_progress_atom_remaining_time(predictor):
    prediction = predictor.predict_atom(FOO, started=100, now=130)
    assert prediction.elapsed == 30
    assert prediction.estimated_remaining == 10.0


def test_remaining_time_never_negative(predictor):
    prediction = predictor.predict_atom(FOO, started=100, now=1000)
    assert prediction.estimated_remaining == 0.0


def test_unknown_atom_has_no_estimate(predictor):
    prediction = predictor.predict_atom(NEW, started=100, now=130)
    assert prediction.basis == 0
    assert prediction.estimated_total is None
    assert prediction.estimated_remaining is None
    assert not prediction.known


def test_weighted_and_unweighted_estimates():
    stats = {BAR: make_stats(100, 200, 400)}
    assert Predictor(stats).predict_atom(BAR).estimated_total == pytest.approx(275.0)
    assert Predictor(stats, mode="mean").predict_atom(BAR).estimated_total == pytest.approx(
        700 / 3
    )


def test_invalid_mode():
    with pytest.raises(ValueError):
        Predictor({}, mode="median")


def test_lookup_by_package():
    predictor = Predictor({"app-misc/foo": make_stats(40)}, per_version=False)
    assert predictor.predict_atom(Atom("app-misc", "foo", "9.9")).estimated_total == 40.0


def test_predict_open_sessions_then_planned_atoms(predictor):
    sessions = [
        open_session(FOO, 100),
        open_session(None, 90, SessionType.SYNC),
    ]
    predictions = predictor.predict([BAR, FOO, NEW], open_sessions=sessions, now=120)

    assert [p.atom for p in predictions] == [FOO, BAR, NEW]
    assert predictions[0].estimated_remaining == 20.0
    assert predictions[1].estimated_remaining is None
    assert predictions[2].basis == 0


def test_batch_total(predictor):
    predictions = [
        predictor.predict_atom(FOO, started=100, now=130),
        predictor.predict_atom(FOO),
        predictor.predict_atom(NEW),
    ]
    batch = batch_total(predictions)
    assert batch.total == 80.0
    assert batch.remaining == 50.0
    assert batch.unknown == 1
    assert batch.count == 3


@pytest.mark.parametrize(
    "line,expected",
    [
        (
            '[ebuild   R    ] dev-lang/python-3.11.4:3.11::gentoo  USE="ssl -test"',
            Atom("dev-lang", "python", "3.11.4"),
        ),
        ("[ebuild  N     ] app-misc/foo-1.0::gentoo", Atom("app-misc", "foo", "1.0")),
        ("[binary     U  ] sys-apps/bar-2.1-r1 [2.0]", Atom("sys-apps", "bar", "2.1-r1")),
        ("[ebuild     U ] app-misc/foo-bar-1.0 [0.9]", Atom("app-misc", "foo-bar", "1.0")),
        ("These are the packages that would be merged, in order:", None),
        ("Calculating dependencies... done!", None),
        ('[blocks B      ] <sys-apps/baz-1.0 ("<sys-apps/baz-1.0" is blocking foo-1.0)', None),
        ("", None),
    ],
)
def test_pretend_parser_line(line, expected):
    assert PretendParser().parse_line(line) == expected


def test_pretend_parser_lines_keep_order():
    lines = [
        "",
        "These are the packages that would be merged, in order:",
        "",
        "[ebuild  N     ] app-misc/foo-1.0::gentoo",
        "[ebuild     U ] app-misc/bar-2.0 [1.0]",
        "",
        "Total: 2 packages (1 upgrade, 1 new), Size of downloads: 0 KiB",
    ]
    assert PretendParser().parse_lines(lines) == [FOO, BAR]


def test_unmerge_history_does_not_change_estimates():
    lines = [
        "100:  >>> emerge (1 of 1) app-misc/foo-1.0 to /",
        "700:  ::: completed emerge (1 of 1) app-misc/foo-1.0 to /",
        "800:  === Unmerging... (app-misc/foo-1.0)",
        "802:  >>> unmerge success: app-misc/foo-1.0",
    ]
    report = LogParsingEngine().analyze(lines, threaded=False)
    prediction = Predictor.from_report(report).predict_atom(FOO)

    assert prediction.basis == 1
    assert prediction.estimated_total == 600.0


def test_decimal_start_with_explicit_now(predictor):
    prediction = predictor.predict_atom(FOO, started=Decimal("100.5"), now=Decimal("110.5"))
    assert prediction.elapsed == 10.0
    assert prediction.estimated_remaining == 30.0


def test_fractional_log_predicts_with_wall_clock():
    lines = [
        "100.5:  >>> emerge (1 of 1) app-misc/foo-1.0 to /",
        "140.25:  ::: completed emerge (1 of 1) app-misc/foo-1.0 to /",
        "200.5:  >>> emerge (1 of 1) app-misc/foo-1.0 to /",
    ]
    report = LogParsingEngine().analyze(lines, threaded=False)
    assert report.open_at_end[0].start == Decimal("200.5")

    (prediction,) = Predictor.from_report(report).predict(open_sessions=report.open_at_end)
    assert prediction.estimated_total == pytest.approx(39.75)
    assert prediction.elapsed > 0
    assert prediction.estimated_remaining == 0.0

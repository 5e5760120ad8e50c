"""Tests for the four-pass reconciliation engine."""

import datetime as dt

import pytest

from solar_recon.matching.config import ReconciliationConfig
from solar_recon.matching.engine import (
    CONFIRMED,
    DATE_KW_ONLY,
    EXACT_KW_DATE,
    FUZZY_INSTALLER_KW,
    INSTALLER_FISCAL_YEAR,
    PENDING_REVIEW,
    MatchCandidate,
    disposition,
    generate_candidates,
    reconcile,
    round_confidence,
    select_best,
)
from solar_recon.matching.index import ReconciliationIndex
from solar_recon.matching.records import InstallationRecord, InterconnectionRecord


def _permit(
    permit_id: str,
    kw: float | None = None,
    completed: dt.date | None = None,
    contractor: str | None = None,
    issued: dt.date | None = None,
) -> InstallationRecord:
    """Helper: create an InstallationRecord."""
    return InstallationRecord(
        id=permit_id,
        capacity_kw=kw,
        completed_date=completed,
        issued_date=issued,
        contractor=contractor,
    )


def _pir(
    pir_id: str,
    kw: float | None = None,
    date: dt.date | None = None,
    installer: str | None = None,
    fiscal_year: str | int | None = None,
) -> InterconnectionRecord:
    """Helper: create an InterconnectionRecord."""
    payload = {}
    if installer is not None:
        payload["installer"] = installer
    if fiscal_year is not None:
        payload["fiscal_year"] = fiscal_year
    return InterconnectionRecord.model_validate(
        {"id": pir_id, "capacity_kw": kw, "interconnection_date": date, "payload": payload}
    )


# ===========================================================================
# Worked examples
# ===========================================================================

class TestExactKwDate:
    def test_full_agreement_clamped_to_ceiling(self) -> None:
        permit = _permit("p1", kw=10.0, completed=dt.date(2024, 3, 1), contractor="Acme Solar LLC")
        pir = _pir("i1", kw=10.0, date=dt.date(2024, 3, 5), installer="ACME SOLAR")

        result = reconcile([permit], [pir])

        assert len(result.matches) == 1
        match = result.matches[0]
        assert match.interconnection_id == "i1"
        assert match.method == EXACT_KW_DATE
        # 70 + 15 + 15 + 10 = 110, clamped
        assert match.confidence == 98
        assert match.status == CONFIRMED
        assert match.evidence == [
            "kW: 10 vs 10 (100% match)",
            "Date: 4 days apart",
            "Installer: 100% similar",
        ]
        assert match.notes == "kW: 10 vs 10 (100% match); Date: 4 days apart; Installer: 100% similar"

    def test_issue_date_used_without_completion(self) -> None:
        permit = _permit("p1", kw=6.0, issued=dt.date(2024, 5, 1))
        pir = _pir("i1", kw=6.0, date=dt.date(2024, 5, 20))

        match = reconcile([permit], [pir]).matches[0]
        # 70 + 15 + 8 (19 days)
        assert match.method == EXACT_KW_DATE
        assert match.confidence == 93

    def test_outside_date_window(self) -> None:
        permit = _permit("p1", kw=6.0, completed=dt.date(2024, 5, 1))
        pir = _pir("i1", kw=6.0, date=dt.date(2024, 6, 1))

        result = reconcile([permit], [pir])
        assert result.matches == []
        assert result.unmatched == 1


class TestInstallerFiscalYear:
    def test_boundary_score_is_accepted(self) -> None:
        permit = _permit("p1", completed=dt.date(2023, 1, 15), contractor="Sunrise Power Co")
        pir = _pir("i1", kw=7.0, date=dt.date(2023, 3, 31), installer="SUNRISE POWER", fiscal_year="FY2023")

        result = reconcile([permit], [pir])

        match = result.matches[0]
        assert match.method == INSTALLER_FISCAL_YEAR
        # 50 + 5 (75 days)
        assert match.confidence == 55
        assert match.status == PENDING_REVIEW
        assert match.evidence == [
            "Installer match: Sunrise Power Co",
            "Same fiscal year: FY2023",
            "Date: 75 days apart",
        ]

    def test_different_fiscal_year(self) -> None:
        permit = _permit("p1", completed=dt.date(2023, 9, 30), contractor="Sunrise Power Co")
        pir = _pir("i1", date=dt.date(2023, 10, 1), installer="SUNRISE POWER")

        result = reconcile([permit], [pir])
        assert result.matches == []
        assert result.unmatched == 1


class TestFuzzyInstallerKw:
    def test_similar_installer_and_capacity(self) -> None:
        permit = _permit("p1", kw=8.0, completed=dt.date(2024, 1, 1), contractor="SunPower Solutions")
        pir = _pir("i1", kw=8.6, date=dt.date(2024, 4, 10), installer="SunPowr Solutions")

        match = reconcile([permit], [pir]).matches[0]

        assert match.method == FUZZY_INSTALLER_KW
        # 35 + 94.4% * 15 + 70% * 15 + 10 (100 days) = 69.67
        assert match.confidence == 70
        assert match.status == PENDING_REVIEW
        assert match.evidence == [
            "Installer: 94% similar",
            "kW: 8 vs 8.6 (70% match)",
            "Date: 100 days apart",
        ]

    def test_weak_candidate_dropped(self) -> None:
        permit = _permit("p1", kw=8.0, contractor="ABCDEFGHIJ")
        pir = _pir("i1", kw=9.2, installer="ABCDEFGXYZ")
        index = ReconciliationIndex.from_records([pir])

        # 35 + 70% * 15 + 50% * 15 = 53 < 55
        assert generate_candidates(permit, index, set(), ReconciliationConfig()) == []
        assert reconcile([permit], [pir]).unmatched == 1


class TestDateKwOnly:
    def test_crosses_capacity_bucket_edge(self) -> None:
        """Near-identical ratings in adjacent buckets are still caught."""
        permit = _permit("p1", kw=7.24, completed=dt.date(2024, 6, 1))
        pir = _pir("i1", kw=7.26, date=dt.date(2024, 6, 3), installer="Whoever Solar")

        match = reconcile([permit], [pir]).matches[0]

        assert match.method == DATE_KW_ONLY
        # 60 + 14.25 + 15 = 89.25, clamped
        assert match.confidence == 80
        assert match.status == PENDING_REVIEW

    def test_not_run_when_permit_has_installer(self) -> None:
        permit = _permit("p1", kw=7.24, completed=dt.date(2024, 6, 1), contractor="Zed Roofing")
        pir = _pir("i1", kw=7.26, date=dt.date(2024, 6, 3))

        assert reconcile([permit], [pir]).matches == []


# ===========================================================================
# Run-level behaviour
# ===========================================================================

class TestSkippedAndUnmatched:
    def test_insufficient_data_is_skipped(self) -> None:
        permit = _permit("p1", kw=8.2)
        pir = _pir("i1", kw=8.2, date=dt.date(2024, 1, 1))

        result = reconcile([permit], [pir])

        assert result.processed == 1
        assert result.skipped == 1
        assert result.unmatched == 0
        assert result.matches == []

    def test_empty_inputs(self) -> None:
        result = reconcile([], [])
        assert result.processed == 0
        assert result.matches == []

    def test_no_interconnections(self) -> None:
        result = reconcile([_permit("p1", kw=5.0, completed=dt.date(2024, 1, 1))], [])
        assert result.unmatched == 1


class TestExclusivity:
    @pytest.fixture
    def records(self):
        permits = [
            _permit("a", kw=10.0, completed=dt.date(2024, 3, 26)),
            _permit("b", kw=10.0, completed=dt.date(2024, 2, 5)),
        ]
        pirs = [
            _pir("i1", kw=10.0, date=dt.date(2024, 3, 1)),
            _pir("i2", kw=10.1, date=dt.date(2024, 1, 10)),
        ]
        return permits, pirs

    def test_first_permit_claims_shared_candidate(self, records) -> None:
        permits, pirs = records

        result = reconcile(permits, pirs)

        assert [(m.installation_id, m.interconnection_id, m.confidence) for m in result.matches] == [
            ("a", "i1", 90),
            ("b", "i2", 89),
        ]

    def test_order_decides_the_claim(self, records) -> None:
        permits, pirs = records

        result = reconcile(list(reversed(permits)), pirs)

        assert result.matches[0].installation_id == "b"
        assert result.matches[0].interconnection_id == "i1"
        assert all(m.installation_id != "a" for m in result.matches)
        assert result.unmatched == 1

    def test_consumed_record_never_resurfaces(self, records) -> None:
        permits, pirs = records
        index = ReconciliationIndex.from_records(pirs)

        candidates = generate_candidates(permits[1], index, {"i1"}, ReconciliationConfig())

        assert {c.interconnection_id for c in candidates} == {"i2"}

    def test_each_interconnection_used_once(self) -> None:
        permits = [_permit(f"p{n}", kw=5.0, completed=dt.date(2024, 1, n + 1)) for n in range(5)]
        pirs = [_pir(f"i{n}", kw=5.0, date=dt.date(2024, 1, n + 2)) for n in range(3)]

        result = reconcile(permits, pirs)

        claimed = [m.interconnection_id for m in result.matches]
        assert len(claimed) == len(set(claimed)) == 3
        assert result.unmatched == 2


class TestDeterminism:
    def test_interconnection_order_does_not_matter(self) -> None:
        permits = [
            _permit("p1", kw=10.0, completed=dt.date(2024, 3, 1), contractor="Acme Solar"),
            _permit("p2", completed=dt.date(2023, 1, 15), contractor="Sunrise Power"),
            _permit("p3", kw=6.0, completed=dt.date(2024, 5, 1)),
        ]
        pirs = [
            _pir("i1", kw=10.0, date=dt.date(2024, 3, 5), installer="ACME SOLAR"),
            _pir("i2", kw=10.0, date=dt.date(2024, 3, 5), installer="ACME SOLAR"),
            _pir("i3", kw=7.0, date=dt.date(2023, 3, 31), installer="SUNRISE POWER"),
            _pir("i4", kw=6.0, date=dt.date(2024, 5, 3)),
            _pir("i5", kw=6.0, date=dt.date(2024, 5, 3)),
        ]

        forward = reconcile(permits, pirs)
        backward = reconcile(permits, list(reversed(pirs)))

        assert forward.matches == backward.matches
        # equal scores resolve to the lowest id
        assert [m.interconnection_id for m in forward.matches] == ["i1", "i3", "i4"]

    def test_confidence_and_status_invariants(self) -> None:
        permits = [
            _permit(f"p{n}", kw=4.0 + n, completed=dt.date(2024, 2, 1) + dt.timedelta(days=n * 9), contractor=name)
            for n, name in enumerate(["Acme Solar", None, "Sunrise Power", "Acme Solar Energy", None])
        ]
        pirs = [
            _pir(f"i{n}", kw=4.0 + n * 1.02, date=dt.date(2024, 2, 3) + dt.timedelta(days=n * 11), installer=name)
            for n, name in enumerate(["ACME SOLAR", None, "SUNRISE POWER", "Acme Solar", "Other"])
        ]
        config = ReconciliationConfig()

        result = reconcile(permits, pirs, config)

        assert result.matches
        for m in result.matches:
            assert config.thresholds.accept <= m.confidence <= 100
            assert m.status == disposition(m.confidence, config)
            assert m.evidence
        assert sum(result.method_counts.values()) == len(result.matches)
        assert result.confirmed_count + result.pending_review_count == len(result.matches)


class TestSelection:
    def test_higher_score_wins(self) -> None:
        best = select_best(
            [
                MatchCandidate("i2", FUZZY_INSTALLER_KW, 80.0, []),
                MatchCandidate("i1", EXACT_KW_DATE, 75.0, []),
            ]
        )
        assert best.interconnection_id == "i2"

    def test_tie_goes_to_earlier_pass(self) -> None:
        best = select_best(
            [
                MatchCandidate("i1", DATE_KW_ONLY, 80.0, []),
                MatchCandidate("i9", INSTALLER_FISCAL_YEAR, 80.0, []),
            ]
        )
        assert best.method == INSTALLER_FISCAL_YEAR

    def test_tie_within_pass_goes_to_lowest_id(self) -> None:
        best = select_best(
            [MatchCandidate("i9", EXACT_KW_DATE, 90.0, []), MatchCandidate("i3", EXACT_KW_DATE, 90.0, [])]
        )
        assert best.interconnection_id == "i3"

    def test_no_candidates(self) -> None:
        assert select_best([]) is None


class TestRounding:
    @pytest.mark.parametrize("score, expected", [(54.4, 54), (54.5, 55), (84.5, 85), (69.67, 70), (98.0, 98)])
    def test_round_half_up(self, score: float, expected: int) -> None:
        assert round_confidence(score) == expected

    def test_disposition_boundary(self) -> None:
        config = ReconciliationConfig()
        assert disposition(85, config) == CONFIRMED
        assert disposition(84, config) == PENDING_REVIEW

    def test_custom_thresholds(self) -> None:
        config = ReconciliationConfig(thresholds={"accept": 95, "confirm": 97})
        permit = _permit("p1", kw=6.0, issued=dt.date(2024, 5, 1))
        pir = _pir("i1", kw=6.0, date=dt.date(2024, 5, 20))

        result = reconcile([permit], [pir], config)
        # 93 < 95
        assert result.matches == []


class TestNonFiniteCapacity:
    def test_unvalidated_infinite_capacity_does_not_crash(self) -> None:
        """Records built without validation still never reach the bucket math with inf."""
        permit = InstallationRecord.model_construct(
            id="p1", capacity_kw=float("inf"), completed_date=dt.date(2024, 3, 1), contractor=None
        )
        pir = InterconnectionRecord.model_construct(
            id="i1", capacity_kw=float("inf"), interconnection_date=dt.date(2024, 3, 2)
        )

        result = reconcile([permit], [pir, _pir("i2", kw=10.0, date=dt.date(2024, 3, 2))])

        assert result.matches == []
        assert result.unmatched == 1


class TestPassCeilings:
    @pytest.fixture
    def generous_config(self) -> ReconciliationConfig:
        """Bases raised far enough that passes 2 and 3 overshoot their ceilings."""
        return ReconciliationConfig(
            installer_fiscal_year={"base": 80},
            fuzzy_installer_kw={"base": 70},
        )

    def test_every_pass_clamped(self, generous_config) -> None:
        permit = _permit("p1", kw=10.0, completed=dt.date(2024, 3, 1), contractor="Acme Solar LLC")
        pir = _pir("i1", kw=10.0, date=dt.date(2024, 3, 5), installer="ACME SOLAR")
        index = ReconciliationIndex.from_records([pir])

        candidates = generate_candidates(permit, index, set(), generous_config)
        scores = {c.method: c.score for c in candidates}

        # raw: 110, 80 + 20 + 15 = 115, 70 + 15 + 15 + 15 = 115
        assert scores == {EXACT_KW_DATE: 98, INSTALLER_FISCAL_YEAR: 90, FUZZY_INSTALLER_KW: 85}

    def test_installer_fiscal_year_ceiling_on_accepted_match(self, generous_config) -> None:
        """Adjacent capacity buckets keep pass 1 out; pass 2 wins at its ceiling."""
        permit = _permit("p1", kw=10.0, completed=dt.date(2024, 3, 1), contractor="Acme Solar LLC")
        pir = _pir("i1", kw=10.3, date=dt.date(2024, 3, 5), installer="ACME SOLAR")

        match = reconcile([permit], [pir], generous_config).matches[0]

        assert match.method == INSTALLER_FISCAL_YEAR
        assert match.confidence == 90
        assert match.status == CONFIRMED

    def test_fuzzy_installer_kw_ceiling_on_accepted_match(self, generous_config) -> None:
        """Near-miss installer names keep pass 2 out; pass 3 wins at its ceiling."""
        permit = _permit("p1", kw=8.0, completed=dt.date(2024, 1, 1), contractor="SunPower Solutions")
        pir = _pir("i1", kw=8.6, date=dt.date(2024, 1, 20), installer="SunPowr Solutions")

        match = reconcile([permit], [pir], generous_config).matches[0]

        # 70 + 14.17 + 10.5 + 15 = 109.67
        assert match.method == FUZZY_INSTALLER_KW
        assert match.confidence == 85

from aggregator import aggregate_reports
from narrative import (
    FALLBACK_CONCLUSION,
    FALLBACK_THEMES,
    build_fallback_narrative,
    build_narrative_prompt,
    generate_narrative,
)

from conftest import make_report


def _summary(reports=None):
    if reports is None:
        reports = [make_report(), make_report(location="Chikanga", message_summary="The love of God")]
    return aggregate_reports(reports, group_key=1, start_date="2026-02-01", end_date="2026-02-28", group_name="Sakubva Cluster")


def test_fallback_is_built_from_summary_fields() -> None:
    narrative = build_fallback_narrative(_summary(), "first_person")

    assert narrative["source"] == "fallback"
    assert narrative["narrative"].startswith("During February 2026, we carried out 2 evangelism outreaches.")
    assert "Chikanga and Sakubva" in narrative["narrative"]
    assert "6 souls were saved and 2 were healed" in narrative["narrative"]
    assert narrative["themes"] == ["Preached on repentance", "The love of God"]
    assert narrative["conclusion"] == FALLBACK_CONCLUSION


def test_fallback_voice_changes_subject() -> None:
    assert "the team carried out" in build_fallback_narrative(_summary(), "third_person")["narrative"]
    assert "the assembly carried out" in build_fallback_narrative(_summary(), "neutral")["narrative"]


def test_fallback_with_no_reports() -> None:
    narrative = build_fallback_narrative(_summary([]))

    assert narrative["narrative"] == "No evangelism reports were submitted for February 2026."
    assert narrative["themes"] == []


def test_fallback_uses_boilerplate_themes_without_summaries() -> None:
    narrative = build_fallback_narrative(_summary([make_report(message_summary="")]))

    assert narrative["themes"] == FALLBACK_THEMES


def test_absent_generator_gives_fallback() -> None:
    summary = _summary()

    assert generate_narrative(summary, "neutral") == build_fallback_narrative(summary, "neutral")


def test_failing_generator_gives_fallback() -> None:
    def broken(prompt, system_prompt):
        raise RuntimeError("service unavailable")

    result = generate_narrative(_summary(), "first_person", broken)

    assert result["source"] == "fallback"


def test_malformed_generator_output_gives_fallback() -> None:
    for output in [None, "plain text", {"themes": ["x"]}, {"narrative": "  "}, {"narrative": "ok", "themes": 5}]:
        result = generate_narrative(_summary(), "first_person", lambda prompt, system_prompt: output)
        assert result["source"] == "fallback"


def test_generator_output_is_used() -> None:
    calls = []

    def generator(prompt, system_prompt):
        calls.append(prompt)
        return {"narrative": " We went out. ", "themes": ["Repentance", ""], "conclusion": "Glory to God."}

    result = generate_narrative(_summary(), "third_person", generator)

    assert result == {"narrative": "We went out.", "themes": ["Repentance"], "conclusion": "Glory to God.", "source": "ai"}
    assert "[Compiled Testimony]" in calls[0]


def test_prompt_contains_summary_data() -> None:
    prompt = build_narrative_prompt(_summary(), "first_person")

    assert "PERIOD: February 2026" in prompt
    assert "SAVED: 6" in prompt
    assert "LOCATIONS: Chikanga, Sakubva" in prompt
    assert "- The love of God" in prompt
    assert "[Executor Report]" in prompt
    assert "BY ACTIVITY:\n- Street Evangelism: 2 outreaches, 6 saved, 2 healed" in prompt
    assert "BY ASSEMBLY" not in prompt

"""
Tests for data report assembly and narrative synthesis.
"""

import pytest

from chainscope.errors import AnalysisFailure
from chainscope.providers.models import EntityMetadata
from chainscope.tools.data_report import (
    TransactionLookupReport,
    address_frequency,
    build_address_report,
    build_entity_info,
    describe_window,
    known_transaction_types,
    sample_transactions,
)
from chainscope.tools.entity_classifier import build_suspect_profile
from chainscope.tools.narrative_synthesizer import (
    ANALYSIS_SYSTEM_PROMPT,
    NarrativeSynthesizer,
    SynthesizeNarrativeInput,
    build_user_prompt,
    transaction_summary,
)
from chainscope.tools.pattern_detector import detect_patterns
from tests.fakes import (
    BONK_MINT,
    BYSTANDER,
    FOCAL,
    NOW,
    POOL_PDA,
    SIGNATURE,
    WASH_TRADER,
    FakeCompletionService,
    abnormal_history,
    transfer,
    tx,
    wash_trader_history,
)


def focal_report(specific_token=None, hours_back=10):
    metadata = EntityMetadata(address=FOCAL, is_on_curve=True, type="UNKNOWN")
    entity_info = build_entity_info(metadata, metadata, specific_token)
    history = abnormal_history()
    return build_address_report(
        entity_info, history, hours_back, detect_patterns(history, FOCAL), account_type="UNKNOWN"
    )


@pytest.mark.parametrize(
    "hours_back, token, expected",
    [
        (10, None, "Last 10 hours (0 days)"),
        (48, None, "Last 48 hours (2 days)"),
        (8760, BONK_MINT, f"Complete history (365 days) - filtered for token: {BONK_MINT}"),
        (720, BONK_MINT, f"Complete history (30 days) - filtered for token: {BONK_MINT}"),
        (24, BONK_MINT, f"Last 24 hours (1 days) - filtered for token: {BONK_MINT}"),
    ],
)
def test_describe_window(hours_back, token, expected):
    assert describe_window(hours_back, token) == expected


def test_report_statistics():
    history = [
        tx("a", [transfer(FOCAL, WASH_TRADER), transfer(WASH_TRADER, BYSTANDER)], type="SWAP"),
        tx("b", [transfer(FOCAL, WASH_TRADER)], type="UNKNOWN"),
        tx("c", [], type="TRANSFER"),
    ]

    frequency = address_frequency(history)
    assert frequency[WASH_TRADER] == 3
    assert frequency[FOCAL] == 2
    assert frequency[BYSTANDER] == 1

    assert known_transaction_types(history) == {"SWAP": 1, "TRANSFER": 1}
    assert [s.signature for s in sample_transactions(history)] == ["a", "c"]


def test_build_address_report():
    """Test the report carries entity info and the top suspects."""
    report = focal_report()

    assert report.report_type == "address_analysis"
    assert report.total_transactions == 29
    assert report.unique_addresses == 4
    assert report.top_addresses_by_frequency[0].address == FOCAL
    assert report.top_addresses_by_frequency[0].transaction_count == 29
    assert report.entity_info.category == "regular_wallet"
    assert report.entity_info.is_benign is False
    assert report.entity_info.description == "Regular wallet"
    assert report.account_type == "UNKNOWN"
    assert len(report.sample_transactions) == 10
    assert [s.address for s in report.suspicious_pattern_detection.top_suspicious] == [
        WASH_TRADER,
        POOL_PDA,
    ]


def test_transaction_summary_uses_newest_first_order():
    summary = transaction_summary(abnormal_history())

    assert summary["total"] == 29
    assert summary["byType"] == {"SWAP": 29}
    assert summary["timeRange"] == {"earliest": NOW - 5000, "latest": NOW}
    assert transaction_summary([])["timeRange"] == {"earliest": None, "latest": None}


def test_user_prompt_includes_every_artifact():
    profile = build_suspect_profile(
        EntityMetadata(address=WASH_TRADER, is_on_curve=True),
        "Wash trading pattern (equal buys/sells)",
        wash_trader_history(),
    )
    validated = SynthesizeNarrativeInput(
        user_query="Show a table of my BONK trades",
        data_report=focal_report(specific_token=BONK_MINT, hours_back=8760),
        transactions=abnormal_history(),
        suspect_profiles=[profile],
    )

    prompt = build_user_prompt(validated, transaction_limit=5)

    assert f"TOKEN-SPECIFIC ANALYSIS: only transactions touching the token {BONK_MINT}" in prompt
    assert "DEEP DIVE ANALYSIS" in prompt
    assert WASH_TRADER in prompt
    assert "Date/Time | Type (Buy/Sell) | Amount | Running Balance" in prompt
    details = prompt.split("## FULL TRANSACTION DETAILS")[1]
    assert details.count('"signature": ') == 5
    assert prompt.endswith("User Query: Show a table of my BONK trades")


@pytest.mark.asyncio
async def test_mock_narrative_for_lookup():
    synthesizer = NarrativeSynthesizer()
    looked_up = tx(SIGNATURE, [transfer(FOCAL, WASH_TRADER, 3)], type="TRANSFER")

    output = await synthesizer.execute(
        {
            "user_query": f"Explain {SIGNATURE}",
            "data_report": TransactionLookupReport(signatures=[SIGNATURE], transactions=[looked_up]),
            "transactions": [looked_up],
        }
    )

    assert output.generated_by == "template"
    assert output.prompt_transaction_count == 1
    assert "Looked up 1 signature; 1 transaction resolved." in output.analysis
    assert f"Participants: {FOCAL}, {WASH_TRADER}" in output.analysis


@pytest.mark.asyncio
async def test_completion_narrative_is_returned_verbatim():
    completion = FakeCompletionService(analysis_response="### Summary\nCustom text")
    synthesizer = NarrativeSynthesizer(completion, transaction_limit=3)

    output = await synthesizer.execute(
        {
            "user_query": "Analyze",
            "data_report": focal_report(),
            "transactions": abnormal_history(),
        }
    )

    assert output.analysis == "### Summary\nCustom text"
    assert output.generated_by == "completion"
    assert output.prompt_transaction_count == 3
    assert completion.calls[0][0] == ANALYSIS_SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_completion_failure_raises_analysis_failure():
    synthesizer = NarrativeSynthesizer(FakeCompletionService(error="model overloaded"))

    with pytest.raises(AnalysisFailure) as exc_info:
        await synthesizer.execute(
            {"user_query": "Analyze", "data_report": focal_report(), "transactions": []}
        )

    assert exc_info.value.message == "Analysis failed: model overloaded"

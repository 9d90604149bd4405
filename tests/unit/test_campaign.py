"""Tests for the built-in campaign plan."""

import json

import pytest

from conftest import FakeProvider, make_response
from genplan.ai_providers.base import Attachment
from genplan.execution.planner import PlanAssembler, RepeatedStep, validate_steps
from genplan.plans import PlanLoadError, build_campaign_steps, get_preset

STEP_KEYS = [
    "step2_campaignArchitecture",
    "step3_multiChannelCampaigns",
    "step4_assetGeneration",
]


class TestCampaignSteps:
    def test_step_layout(self):
        steps = build_campaign_steps(analyze_manuscript=False)
        assert [s.key for s in steps] == STEP_KEYS + ["emailNurtureSequence"]
        for step in steps[:3]:
            assert step.output_keys == (step.key,)
            assert step.schema.property_names == (step.key,)
            assert step.context_keys == ("analysis",)
            assert not step.use_plan_attachments
            assert f'"{step.key}"' in step.prompt

        nurture = steps[-1]
        assert isinstance(nurture, RepeatedStep)
        assert nurture.count == 5

    def test_analysis_step_comes_first(self):
        analysis, *rest = build_campaign_steps()
        assert analysis.key == "analysis"
        assert analysis.free_text
        assert analysis.schema is None
        assert analysis.use_plan_attachments
        assert analysis.label == "Manuscript Analysis"
        assert [s.key for s in rest] == STEP_KEYS + ["emailNurtureSequence"]

    def test_steps_are_consistent(self):
        validate_steps(build_campaign_steps(analyze_manuscript=False), {"analysis": "DNA"})
        validate_steps(build_campaign_steps(), {})

    def test_get_preset(self):
        assert len(get_preset("campaign", {"analysis": "DNA"})) == 4
        assert len(get_preset("campaign", {}, has_attachments=True)) == 5
        with pytest.raises(ValueError, match="--attach"):
            get_preset("campaign")
        with pytest.raises(PlanLoadError, match="campaign"):
            get_preset("unknown")

    @pytest.mark.asyncio
    async def test_full_run(self):
        documents = [{key: {"section": key}} for key in STEP_KEYS]
        emails = [{"day": day, "subject": f"s{day}", "body": "b"} for day in (1, 3)]
        provider = FakeProvider([make_response(json.dumps(d)) for d in documents + emails])

        plan = await PlanAssembler(provider).run_multi_step(
            build_campaign_steps(nurture_emails=2, analyze_manuscript=False),
            variables={"analysis": "Book DNA text"},
        )

        assert plan.keys() == STEP_KEYS + ["emailNurtureSequence"]
        assert plan["step3_multiChannelCampaigns"] == {"section": "step3_multiChannelCampaigns"}
        assert plan["emailNurtureSequence"] == emails
        for request in provider.requests:
            assert request.attachments[0].text == "analysis:\n\nBook DNA text"
        assert "email 2 of 2" in provider.requests[-1].instructions

    @pytest.mark.asyncio
    async def test_full_run_from_manuscript(self):
        manuscript = Attachment.from_bytes(b"%PDF-1.7", "application/pdf")
        analysis = "## Core Identity\n\nA quiet literary thriller."
        documents = [{key: {"section": key}} for key in STEP_KEYS]
        email = {"day": 1, "subject": "s1", "body": "b"}
        provider = FakeProvider(
            [make_response(analysis)] + [make_response(json.dumps(d)) for d in documents + [email]]
        )

        plan = await PlanAssembler(provider).run_multi_step(
            build_campaign_steps(nurture_emails=1), attachments=[manuscript]
        )

        assert plan.keys() == ["analysis"] + STEP_KEYS + ["emailNurtureSequence"]
        assert plan["analysis"] == analysis
        first, *later = provider.requests
        assert first.attachments == (manuscript,)
        assert first.schema is None
        for request in later:
            assert request.attachments == (Attachment.from_text(f"analysis:\n\n{analysis}"),)

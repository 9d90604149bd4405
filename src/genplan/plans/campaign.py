"""Built-in book marketing campaign plan.

The first step turns the attached manuscript into a free-text "Book DNA"
analysis (or an existing analysis is passed as the ``analysis`` variable).
The campaign is then generated in schema-scoped parts: launch architecture,
multi-channel strategy, creative assets and an email nurture sequence. Each
part receives the analysis as a separate context block.
"""

from typing import Any, List, Mapping

from genplan.ai_providers.schema import SchemaNode, array, integer, obj, string
from genplan.execution.planner import RepeatedStep, StepSpec

ANALYSIS_VARIABLE = "analysis"

NURTURE_EMAIL_COUNT = 5

MARKDOWN = "Format as Markdown with paragraphs separated by blank lines."


def _md(text: str) -> SchemaNode:
    return string(f"{text} {MARKDOWN}")


CHECKLIST_ITEM_FIELDS = {
    "task": string("The specific, concise action to take."),
    "platform": string("The platform for the action (e.g., 'Email', 'Twitter', 'Amazon KDP')."),
    "objective": string("The goal of this task (e.g., 'Drive initial sales')."),
}

CAMPAIGN_ARCHITECTURE_SCHEMA = obj(
    {
        "launchPlan_24Hour": array(
            obj({"hour": string("e.g., 'Hour 1-2', 'Hour 3'"), **CHECKLIST_ITEM_FIELDS}),
            "Hour-by-hour checklist for the first 24 hours of launch.",
        ),
        "momentumPlan_30Day": array(
            obj({"day": string("e.g., 'Day 1', 'Day 2-3'"), **CHECKLIST_ITEM_FIELDS}),
            "Day-by-day checklist for the first 30 days.",
        ),
        "viralPlan_90Day": _md("Strategy for days 31-90."),
        "millionReaderRoadmap_365Day": _md("Long-term strategy for the first year."),
        "budgetAllocation": obj(
            {
                "low": string("Recommendations for a low budget."),
                "medium": string("Recommendations for a medium budget."),
                "high": string("Recommendations for a high budget."),
                "breakdown": string(
                    "Example percentage breakdown for a medium budget "
                    "(e.g., Ads: 50%, Content: 30%, Influencers: 20%)."
                ),
            }
        ),
        "performanceMetrics": array(string(), "List of key KPIs to track."),
        "riskAssessment": _md("Potential risks and mitigation strategies."),
    }
)

MULTI_CHANNEL_SCHEMA = obj(
    {
        "amazonStrategy": obj(
            {
                "keywords": array(string()),
                "categories": array(string()),
                "advertisingPlan": _md("A detailed Amazon Ads campaign strategy."),
                "sampleAdGroups": array(
                    obj(
                        {
                            "campaignType": string("e.g., 'Keyword Targeting', 'Product Targeting'"),
                            "adGroupName": string(),
                            "targetKeywordsOrASINs": array(string()),
                            "adCopy": string(),
                        }
                    )
                ),
            }
        ),
        "socialMediaCampaigns": array(
            obj(
                {
                    "platform": string(),
                    "strategy": _md("The platform-specific strategy."),
                    "contentCalendar_FirstWeek": array(
                        obj(
                            {
                                "day": string(),
                                "postCopy": string(),
                                "visualIdea": string(),
                                "hashtags": string(),
                            }
                        )
                    ),
                }
            )
        ),
        "influencerStrategy": obj(
            {
                "idealProfile": _md("A profile of the ideal influencer."),
                "outreachTemplate": _md("The outreach template."),
                "influencerArchetypes": array(
                    obj(
                        {
                            "archetype": string(
                                "e.g., 'The Academic Reviewer', 'The Aesthetic BookToker'"
                            ),
                            "example": string("A real-world example or description of one."),
                            "personalizedPitch": string(),
                        }
                    )
                ),
            }
        ),
        "contentMarketingStrategy": array(
            obj(
                {
                    "title": string(),
                    "description": string(),
                    "targetKeywords": array(string()),
                    "briefOutline": _md("A brief outline for the content."),
                }
            ),
            "List of blog post or content ideas.",
        ),
    }
)

ASSET_GENERATION_SCHEMA = obj(
    {
        "copyLibrary": obj(
            {
                "bookBlurbs": obj(
                    {"short": string(), "medium": string(), "long": string()}
                ),
                "adCopyHooks": array(
                    obj(
                        {
                            "angle": string("e.g., 'Curiosity', 'Urgency', 'Social Proof'"),
                            "hooks": array(string()),
                        }
                    )
                ),
            }
        ),
        "visualAssetGuidelines": _md("Guidelines and ideas for creating visual assets."),
        "videoTrailerScripts": array(
            obj(
                {
                    "concept": string("e.g., 'Plot-Focused', 'Theme-Focused'"),
                    "script": _md(
                        "A complete 30-second video script with scene descriptions."
                    ),
                }
            )
        ),
        "pressReleaseTemplate": _md("A ready-to-use press release template."),
        "implementationTimeline_30Day": array(
            obj(
                {
                    "week": integer(),
                    "focus": string(),
                    "actionSteps": array(string()),
                }
            )
        ),
    }
)

NURTURE_EMAIL_SCHEMA = obj(
    {
        "day": integer("The day in the sequence this email is sent (e.g., 1, 3, 5)."),
        "subject": string("An attention-grabbing subject line."),
        "body": _md(
            "The full body of the email, written in a persuasive and engaging tone."
        ),
    },
    required=("day", "subject", "body"),
)


ANALYSIS_PROMPT = """
ROLE: You are "Athena", a world-class literary analyst and marketing strategist.

OBJECTIVE: I have provided a book manuscript. Your task is to perform a deep, multi-faceted analysis and generate a comprehensive "Book DNA" document. This document will serve as the single source of truth for all subsequent marketing material generation. Your analysis must be incredibly specific, insightful, and structured clearly in Markdown format.

FORMATTING RULES (You MUST follow these precisely):
1.  **Use Double Newlines:** ALWAYS use a blank line to create vertical space between paragraphs, headings, sub-headings, and list items.
2.  **Space After Headings:** After a bolded heading (e.g., **"Genre & Positioning:"**), there MUST be a blank line before the content begins.
3.  **Space Between Items:** Within a section, each distinct piece of information MUST be its own paragraph, separated from the others by a blank line.

TASK: Generate a Markdown document with the following sections:

# Book DNA: [Book Title if you can infer it, otherwise "The Manuscript"]

## 1. Core Identity
- **Genre & Positioning:** Identify the precise genre, sub-genres, and niche micro-genres. Define the book's unique market position.
- **Unique Selling Proposition (USP):** In one compelling sentence, what is the unique promise of this book to the reader?
- **Logline:** A one-sentence summary of the plot.

## 2. Deep Content Analysis
- **Primary & Secondary Themes:** List and explain the core themes.
- **Core Emotional Arcs:** Describe the emotional journey of the main characters.
- **Narrative Structure:** Briefly describe the plot structure (e.g., Three-Act Structure, Hero's Journey).
- **Key Symbols & Motifs:** Identify recurring symbols or motifs and their significance.
- **Standout Quotes:** Extract 5-10 of the most powerful, marketable quotes from the manuscript.

## 3. Target Audience Profile (The "Avatar")
- **"Day in the Life" Narrative:** Write a short story about the ideal reader's day, highlighting their problems and desires.
- **Demographics & Psychographics:** Detail their age, interests, values, and media habits (blogs, podcasts, influencers they follow).

## 4. Competitive Landscape
- **Key Competitors:** Identify 3-5 key competitor books.
- **Differentiation Strategy:** For each competitor, explain how this book is different and better.

This document should be detailed enough to fuel an entire marketing campaign without needing to reference the manuscript again.
"""

# Deep analysis gets the full reasoning allowance
ANALYSIS_THINKING_BUDGET = 8192

PART_PROMPT = """
ROLE: You are "Athena", {role}.
OBJECTIVE: I have provided a comprehensive "Book DNA" analysis document. Your task is to use ONLY this analysis to {objective}.
TASK: Generate ONLY the "{key}" section of the marketing plan. {extra}Your output must be a single, valid JSON object that strictly adheres to the provided schema.
"""

NURTURE_PROMPT = """
ROLE: You are "Athena", a world-class AI email copywriter for authors.
OBJECTIVE: I have provided a comprehensive "Book DNA" analysis document. Use ONLY this analysis to write a {{count}}-part email nurture sequence that turns a new subscriber into a reader.
TASK: Write ONLY email {{number}} of {{count}}. Email 1 welcomes the subscriber and delivers the promised free resource; the final email makes a clear offer to buy the book. Your output must be a single, valid JSON object that strictly adheres to the provided schema.
"""


def _part(key: str, role: str, objective: str, schema: SchemaNode, description: str, extra: str = "") -> StepSpec:
    # Wrapped in a single-key object, mirroring the full campaign document layout
    return StepSpec(
        key=key,
        prompt=PART_PROMPT.format(role=role, objective=objective, key=key, extra=extra),
        schema=obj({key: schema}),
        output_keys=(key,),
        context_keys=(ANALYSIS_VARIABLE,),
        use_plan_attachments=False,
        description=description,
    )


def build_analysis_step() -> StepSpec:
    """Free-text "Book DNA" analysis of the manuscript passed as a run attachment."""
    return StepSpec(
        key=ANALYSIS_VARIABLE,
        prompt=ANALYSIS_PROMPT,
        thinking_budget=ANALYSIS_THINKING_BUDGET,
        description="Manuscript Analysis",
        free_text=True,
    )


def build_campaign_steps(
    nurture_emails: int = NURTURE_EMAIL_COUNT, analyze_manuscript: bool = True
) -> List[StepSpec]:
    """
    Return the campaign steps.

    With ``analyze_manuscript`` the first step turns the attached manuscript
    into the analysis document. Without it, pass an existing analysis as
    ``variables={"analysis": text}``.
    """
    steps = [build_analysis_step()] if analyze_manuscript else []
    steps += [
        _part(
            "step2_campaignArchitecture",
            "a world-class AI marketing strategist and campaign architect",
            "generate the high-level campaign architecture for a go-to-market strategy",
            CAMPAIGN_ARCHITECTURE_SCHEMA,
            "Campaign Architecture Generation",
        ),
        _part(
            "step3_multiChannelCampaigns",
            "a world-class AI marketing strategist specializing in channel-specific tactics",
            "generate detailed, multi-channel marketing campaigns",
            MULTI_CHANNEL_SCHEMA,
            "Multi-Channel Strategy Generation",
            extra="Your strategies must be directly inspired by the provided analysis. ",
        ),
        _part(
            "step4_assetGeneration",
            "a world-class AI copywriter and creative director",
            "generate a complete library of creative marketing assets",
            ASSET_GENERATION_SCHEMA,
            "Asset Generation",
            extra="All creative assets must be directly inspired by the provided analysis. ",
        ),
        RepeatedStep(
            key="emailNurtureSequence",
            prompt=NURTURE_PROMPT,
            schema=NURTURE_EMAIL_SCHEMA,
            context_keys=(ANALYSIS_VARIABLE,),
            use_plan_attachments=False,
            description="Email Nurture Sequence Generation",
            count=nurture_emails,
        ),
    ]
    return steps


def campaign_preset(variables: Mapping[str, Any], has_attachments: bool) -> List[StepSpec]:
    """Analyze the attached manuscript unless an analysis document is supplied."""
    if variables.get(ANALYSIS_VARIABLE):
        return build_campaign_steps(analyze_manuscript=False)
    if not has_attachments:
        raise ValueError(
            "The campaign preset needs a manuscript (--attach FILE) or an existing "
            f"analysis (--var {ANALYSIS_VARIABLE}=@file)"
        )
    return build_campaign_steps()

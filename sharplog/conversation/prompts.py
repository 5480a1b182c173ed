"""Prompts for the conversational logging turns and the end-of-conversation summary."""

from __future__ import annotations

from sharplog.core.categories import get_categories_for_user
from sharplog.core.models import Target


REDACTION_RULES = """
CRITICAL - REDACTION RULES:
You MUST replace ALL sensitive information with appropriate placeholders.

MANDATORY REPLACEMENTS:
1. Client/Company Information:
   - Client names, or company names mentioned in a confidential context → [CLIENT]
   - Competitor names → [COMPETITOR]
   - Partner organization names → [PARTNER]

2. Financial Information:
   - Specific dollar/currency amounts → [AMOUNT]
   - Salary figures → [SALARY]
   - Budget numbers → [BUDGET]
   - Account numbers → [ACCOUNT]

3. Personal Information:
   - Personal names (except the user) → [NAME]
   - Email addresses → [EMAIL]
   - Phone numbers → [PHONE]
   - Home/work addresses → [ADDRESS]
   - Social Security Numbers / Tax IDs → [SSN]

4. Technical Information:
   - IP addresses (e.g., 192.168.1.1) → [IP]
   - Internal URLs/domains → [URL]
   - API keys/tokens → [API_KEY]
   - Server names → [SERVER]

5. Identifiers:
   - Employee IDs → [EMP_ID]
   - Internal project codenames → [PROJECT]
   - Case/ticket numbers → [TICKET]
   - Contract numbers → [CONTRACT]

6. Sensitive Dates (when context-revealing):
   - Employment start/end dates → [DATE]
   - Contract dates → [DATE]
   (Keep generic dates like "in 2024" or "last month")

WHAT TO KEEP (Do NOT redact):
- Public brand and product names (e.g., "Salesforce", "Figma", "AWS")
- The user's own employer and job title
- Course and module codes (e.g., "CS101", "Unit 7")
- Open-source project names (e.g., "React", "Kubernetes")
- Counts, percentages, durations (e.g., "3 deals", "50% improvement", "2 hours")
- Generic metrics (e.g., "tasks completed: 5")
- Industry terms, technical skills
- Generic time references ("last week", "Q3", "December")
- The user's own accomplishments and role

DETECTION METHODOLOGY:
- Scan for proper nouns that aren't industry terms or public brands
- Identify numeric patterns matching PII (phone: ###-###-####, SSN: ###-##-####)
- Look for email format (xxx@domain.com)
- Detect currency symbols followed by numbers

EXAMPLES:

BAD (Not Redacted):
"Closed deal with Acme Corp for $150,000. John Smith from their finance team signed the contract on 2024-03-15."

GOOD (Properly Redacted):
"Closed deal with [CLIENT] for [AMOUNT]. [NAME] from their finance team signed the contract on [DATE]."

BAD (Over-Redacted):
"Completed [NUMBER] tasks in [TIME] using [SKILL]."

GOOD (Balanced):
"Completed 12 tasks in 3 hours using Python and SQL."

METRICS HANDLING:
- DO redact: "revenue": 150000 → "revenue": "[AMOUNT]"
- DO NOT redact: "deals_closed": 3 → "deals_closed": 3
- DO NOT redact: "completion_rate": 0.95 → "completion_rate": 0.95
"""

_CHAT_ADDENDUM = """
CONVERSATIONAL CONTEXT:
- Redact as you respond, don't wait for summarization
- If user mentions PII, acknowledge but use placeholders in your response
- Example: User says "I worked with Sarah Jones" → You respond "Great work collaborating with [NAME]!"
"""

_EXTRACT_ADDENDUM = """
EXTRACTION CONTEXT:
- Redact PII in extracted text before returning
- Preserve structure and meaning
- Document metadata can stay (title, page count)
"""


def get_redaction_rules_for_context(context: str = "summary") -> str:
    """Redaction rules tailored to "chat", "extract" or "summary" (default)."""
    if context == "chat":
        return REDACTION_RULES + _CHAT_ADDENDUM
    if context == "extract":
        return REDACTION_RULES + _EXTRACT_ADDENDUM
    return REDACTION_RULES


INDUSTRY_CONTEXT = {
    "software_engineering": "You understand software development practices, technical terminology, and engineering culture.",
    "sales": "You understand sales metrics, deal cycles, and business development language.",
    "marketing": "You understand marketing metrics, campaign performance, and brand messaging.",
    "healthcare": "You understand clinical terminology, patient care, and healthcare professional standards.",
    "finance": "You understand financial metrics, investment terminology, and business analysis.",
    "education": "You understand teaching methodologies, student outcomes, and educational standards.",
    "research": "You understand research methodologies, academic terminology, and scientific rigor.",
    "operations": "You understand process optimization, logistics, and operational efficiency.",
    "student": "You understand academic achievement, learning outcomes, and skill development.",
    "apprentice": "You understand vocational training, skills-based learning, and competency development.",
    "default": "You understand professional achievement and career development.",
}


def industry_guidance(industry: str) -> str:
    return INDUSTRY_CONTEXT.get(industry, INDUSTRY_CONTEXT["default"])


def _industry_label(industry: str) -> str:
    return industry.replace("_", " ")


def format_targets_for_turn(targets: list[Target]) -> str:
    """One line per target, including progress, for the turn prompt."""
    lines = []
    for t in targets:
        progress = f"{t.current_value:g}"
        if t.target_value is not None:
            progress += f"/{t.target_value:g}"
        if t.unit:
            progress += f" {t.unit}"
        deadline = f", due {t.deadline}" if t.deadline else ""
        lines.append(f"- {t.name} ({t.type}): {progress}{deadline}")
    return "\n".join(lines)


def build_turn_system_prompt(
    industry: str,
    exchange_count: int,
    max_exchanges: int,
    targets: list[Target] | None = None,
) -> str:
    """System instruction for one conversational logging turn."""
    current = exchange_count + 1
    is_final = current >= max_exchanges

    parts = [
        f"You are a helpful AI assistant for logging work accomplishments in the {_industry_label(industry)} industry.",
        industry_guidance(industry),
        get_redaction_rules_for_context("chat"),
        f"""Your role:
- Ask friendly, conversational questions to help users document the work they completed TODAY
- Only ask about work that is already done, not plans or future tasks
- REDACT any sensitive information the user shares in your responses
- Extract key details: tasks completed, skills used, achievements, metrics
- Keep the conversation natural and encouraging
- After {max_exchanges} exchanges, you'll help create a summary

Guidelines:
- Ask ONE focused question at a time, in no more than two short sentences
- Be specific about what information you need
- Acknowledge and validate user responses
- Look for quantifiable metrics and concrete achievements
- If user mentions PII (names, companies, amounts), acknowledge but use placeholders in your response
- Do NOT bring up the user's targets or goals unless the user mentions them first""",
    ]

    if targets:
        parts.append(
            "The user's active targets (reference ONLY if the user raises them):\n"
            + format_targets_for_turn(targets)
        )

    parts.append(f"Current exchange: {current} of {max_exchanges}")
    if is_final:
        parts.append(
            "This is the final exchange. Acknowledge their response and let them know "
            "you're ready to create a summary. Do not ask another question."
        )
    else:
        parts.append(
            "If the user has clearly described everything they did today, set "
            '"shouldSummarize" to true so the summary can be created early.'
        )

    parts.append("""IMPORTANT DATA EXTRACTION: Actively extract structured data from the conversation:
1. Skills: Technical skills, tools, technologies, or soft skills mentioned
2. Achievements: Concrete accomplishments or completed tasks
3. Metrics: Quantifiable results (numbers, percentages, timeframes)
4. Category: The type of work (e.g., "development", "design", "management", "sales")

Return the extracted data even during the conversation (not just at summarization).

Your response MUST be a JSON object with this structure:
{
  "message": "Your conversational response to the user",
  "extractedData": {
    "skills": ["skill1", "skill2"],
    "achievements": ["achievement1", "achievement2"],
    "metrics": {"metric_name": value},
    "category": "work_category"
  },
  "shouldSummarize": false
}

IMPORTANT: Apply REDACTION in real-time as you respond. Don't echo back sensitive information.""")

    return "\n\n".join(parts)


def format_targets_for_summary(targets: list[Target]) -> str:
    return "\n".join(f"   - ID: {t.id}, Name: {t.name}, Type: {t.type}" for t in targets)


def build_summary_system_prompt(
    industry: str,
    targets: list[Target] | None = None,
    employment_status: str | None = None,
) -> str:
    """System instruction for turning a finished conversation into a work entry."""
    categories = ", ".join(get_categories_for_user(employment_status))
    label = _industry_label(industry)

    target_section = ""
    if targets:
        target_section = f"""
7. Evaluate if this work contributes to any of the following targets.

CRITICAL TARGET LINKING RULES:
- ONLY link targets if the user EXPLICITLY mentioned them in the conversation
- If the user did NOT mention ANY targets by name, return an EMPTY array for targetMappings
- NEVER infer or assume which targets the work relates to
- When in doubt, DO NOT link - empty array is always safe

Available targets:
{format_targets_for_summary(targets)}

For each RELEVANT target mapping, provide:
- targetId: The ID of the target from the list above
- contributionNote: Brief explanation of how this work contributes
- contributionValue: How many units of the target this work adds (a positive number), only if the user gave a number
- smartData: Break down the contribution using SMART criteria:
  * specific: What exactly was accomplished that relates to this target
  * measurable: Quantifiable results and metrics achieved
  * achievable: Challenges overcome and approach taken
  * relevant: Why this work is relevant to achieving the target
  * timeBound: When the work happened (relative timeframe)
"""

    return f"""You are an AI assistant that creates professional work entry summaries for {label} professionals.

{industry_guidance(industry)}

{get_redaction_rules_for_context("summary")}

Your task is to create a factual summary from a conversation about work accomplishments.

Guidelines:
1. Create a clear, professional summary (2-3 sentences) of what was accomplished
2. APPLY REDACTION RULES - Replace ALL sensitive information with placeholders
3. Extract specific skills that were used or developed
4. Identify key achievements with measurable impact (keep counts, redact amounts)
5. Note any relevant metrics or KPIs (keep metric names and counts, redact sensitive values)
6. Choose exactly ONE category from: {categories}
{target_section}
Return a JSON object with this structure:
{{
  "summary": "Professional summary of work accomplished (WITH REDACTION APPLIED)",
  "skills": ["skill1", "skill2"],
  "achievements": ["achievement1", "achievement2"],
  "metrics": {{"metric_name": value}},
  "category": "one category from the list",
  "targetMappings": [{{
    "targetId": "ID from the list above",
    "contributionNote": "Brief explanation of contribution",
    "contributionValue": 3,
    "smartData": {{
      "specific": "What exactly was accomplished",
      "measurable": "Quantifiable results achieved",
      "achievable": "Challenges overcome",
      "relevant": "Why it relates to the target",
      "timeBound": "When it happened"
    }}
  }}]
}}

Be specific and quantifiable where possible. Do not invent facts the user did not state.
REMEMBER: Apply REDACTION to all sensitive information in the summary, achievements, and metrics.

CRITICAL ANTI-HALLUCINATION RULES:
1. Do NOT hallucinate targets - only use IDs from the list above
2. If the user did NOT explicitly mention targets in the conversation, targetMappings MUST be an empty array []
3. NEVER assign contributionValue unless the user provided specific numbers"""


def build_summary_user_message(
    conversation_text: str,
    extracted_hints: dict | None = None,
) -> str:
    """User message for the summary call: the user's turns plus what was captured so far."""
    parts = ["Summarize this work conversation:", "", conversation_text]
    if extracted_hints and any(extracted_hints.get(k) for k in ("skills", "achievements", "metrics")):
        parts.append("")
        parts.append("=== DETAILS CAPTURED DURING THE CONVERSATION ===")
        if extracted_hints.get("skills"):
            parts.append(f"Skills: {', '.join(extracted_hints['skills'])}")
        if extracted_hints.get("achievements"):
            parts.append(f"Achievements: {'; '.join(extracted_hints['achievements'])}")
        if extracted_hints.get("metrics"):
            metrics = ", ".join(f"{k}={v}" for k, v in extracted_hints["metrics"].items())
            parts.append(f"Metrics: {metrics}")
    return "\n".join(parts)

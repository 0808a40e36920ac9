# services/ai_chat.py

from datetime import datetime
from typing import Dict, Iterator, List, Optional

import anthropic

from core.config import settings
from core.supabase_client import get_supabase_client
from core.utils import parse_datetime


GENERAL_SYSTEM_PROMPT = """You are the Permits on the Go AI assistant, an expert on the permit application process, building codes, and construction regulations with deep knowledge of New Jersey's Uniform Construction Code (UCC).

You help users:
- Understand the permit application process step by step
- Navigate subcode requirements (Building, Plumbing, Electrical, Fire, Zoning, Mechanical)
- Fill out permit forms correctly
- Prepare for inspections
- Understand code requirements for their projects
- Use the Permits on the Go app effectively

Keep responses concise, practical, and actionable. When referencing regulations, cite the specific code section when possible. If you're not sure about something, say so rather than guessing."""


PROPERTY_SYSTEM_PROMPT = """You are the Permits on the Go AI assistant, an expert on permits and construction regulations. You are currently helping with a specific property and its permits.

Here is the LIVE context about this property, permits, tasks, team, and inspections:

{property_context}

IMPORTANT BEHAVIORS:
- When the user asks "what needs to be done" or "what's pending", summarize all pending tasks grouped by who they're assigned to
- When the user asks about a contractor/party, reference the team data above
- When asked about status, give a clear summary of where each permit stands and what the next step is
- When the user says the city gave feedback (e.g., corrections needed, approved, denied), advise on exact next steps
- If tasks are overdue, proactively mention them
- Reference actual permit numbers, names, and dates from the data above
- Keep responses concise, practical, and actionable
- If something requires action, tell the user exactly what to do in the app (e.g., "Go to Permits > [name] > Documents and upload the revised plans")"""


def _fmt_date(value) -> str:
    dt = parse_datetime(value)
    return dt.strftime("%m/%d/%Y") if dt else "TBD"


def _rows(table: str, column: str, values: List[str], order: Optional[str] = None) -> List[dict]:
    if not values:
        return []
    client = get_supabase_client()
    query = client.table(table).select("*").in_(column, values)
    if order:
        query = query.order(order)
    return query.execute().data or []


# ============================================================
# Live property context
# ============================================================
def build_property_context(property_id: str) -> str:
    """Markdown snapshot of a property and everything happening on its permits."""
    client = get_supabase_client()

    prop_res = client.table("properties").select("*").eq("id", property_id).limit(1).execute()
    if not prop_res.data:
        return "Property not found."
    prop = prop_res.data[0]

    context = (
        f"## Property: {prop.get('name')}\n"
        f"- Address: {prop.get('address')}, {prop.get('city')}, {prop.get('state')} {prop.get('zip_code')}\n"
        f"- Type: {prop.get('property_type')}\n"
        f"- Block/Lot: {prop.get('block_lot') or 'N/A'}\n"
        f"- Zone: {prop.get('zone_designation') or 'N/A'}\n"
    )

    if prop.get("jurisdiction_id"):
        jur_res = client.table("jurisdictions").select("*").eq("id", prop["jurisdiction_id"]).limit(1).execute()
        if jur_res.data:
            jur = jur_res.data[0]
            context += (
                f"\n## Jurisdiction: {jur.get('name')}, {jur.get('state')}\n"
                f"- Phone: {jur.get('phone') or 'N/A'}\n"
                f"- Email: {jur.get('email') or 'N/A'}\n"
            )

    permits = (
        client.table("permits")
        .select("*")
        .eq("property_id", property_id)
        .order("created_at", desc=True)
        .execute()
    ).data or []

    if not permits:
        return context + "\nNo permits yet for this property.\n"

    permit_ids = [p["id"] for p in permits]
    milestones = _rows("permit_milestones", "permit_id", permit_ids, order="sort_order")
    inspections = _rows("inspections", "permit_id", permit_ids)
    tasks = _rows("tasks", "permit_id", permit_ids)
    parties = _rows("permit_parties", "permit_id", permit_ids)
    checklist = _rows("task_checklist_items", "task_id", [t["id"] for t in tasks])

    user_ids = list({t["assignee_id"] for t in tasks if t.get("assignee_id")} | {p["user_id"] for p in parties if p.get("user_id")})
    users = {u["id"]: u for u in _rows("users", "id", user_ids)}
    contacts = {c["id"]: c for c in _rows("contacts", "id", [p["contact_id"] for p in parties if p.get("contact_id")])}

    def by_permit(rows: List[dict]) -> Dict[str, List[dict]]:
        grouped: Dict[str, List[dict]] = {}
        for row in rows:
            grouped.setdefault(row["permit_id"], []).append(row)
        return grouped

    milestones_by, inspections_by, tasks_by, parties_by = (
        by_permit(milestones), by_permit(inspections), by_permit(tasks), by_permit(parties)
    )

    context += f"\n## Permits ({len(permits)} total)\n"
    for permit in permits:
        pid = permit["id"]
        context += (
            f"\n### {permit.get('title')} ({permit.get('permit_number') or permit.get('internal_ref')})\n"
            f"- Status: {permit.get('status')}\n"
            f"- Subcode: {permit.get('subcode_type')}\n"
            f"- Project Type: {permit.get('project_type')}\n"
            f"- Priority: {permit.get('priority')}\n"
        )

        if milestones_by.get(pid):
            context += "- Milestones: " + ", ".join(
                f"{m['title']} ({m.get('status')})" for m in milestones_by[pid][:10]
            ) + "\n"

        if inspections_by.get(pid):
            context += "- Inspections: " + ", ".join(
                f"{i['type']} on {_fmt_date(i.get('scheduled_date'))} ({i.get('status')})" for i in inspections_by[pid][:10]
            ) + "\n"

        permit_tasks = tasks_by.get(pid, [])
        if permit_tasks:
            pending = [t for t in permit_tasks if t.get("status") != "COMPLETED"]
            context += f"- Tasks: {len(pending)} pending, {len(permit_tasks) - len(pending)} completed\n"
            now = datetime.now().astimezone()
            for task in pending:
                assignee = users.get(task.get("assignee_id"), {}).get("name") or "Unassigned"
                due_dt = parse_datetime(task.get("due_date"))
                due = f"due {_fmt_date(task['due_date'])}" if due_dt else "no due date"
                if due_dt and due_dt < now:
                    due += ", OVERDUE"
                context += f"  - [{task.get('status')}] \"{task['title']}\", assigned to {assignee} ({due})\n"
                items = [c for c in checklist if c["task_id"] == task["id"]]
                if items:
                    done = sum(1 for c in items if c.get("is_completed"))
                    context += f"    Checklist: {done}/{len(items)} items done\n"

        if parties_by.get(pid):
            context += "- Team:\n"
            for party in parties_by[pid]:
                user = users.get(party.get("user_id")) or {}
                contact = contacts.get(party.get("contact_id")) or {}
                name = user.get("name") or contact.get("name") or "Unknown"
                email = user.get("email") or contact.get("email") or ""
                company = contact.get("company") or ""
                line = f"  - {party.get('role')}: {name}"
                if company:
                    line += f" ({company})"
                if email:
                    line += f" <{email}>"
                context += line + "\n"

    return context


def build_system_prompt(property_id: Optional[str] = None, rag_context: Optional[str] = None) -> str:
    if property_id:
        prompt = PROPERTY_SYSTEM_PROMPT.format(property_context=build_property_context(property_id))
    else:
        prompt = GENERAL_SYSTEM_PROMPT

    if rag_context:
        prompt += f"\n\n## Relevant Knowledge Base Information\n{rag_context}"

    return prompt


# ============================================================
# Streaming completion
# ============================================================
def get_anthropic_client() -> anthropic.Anthropic:
    if not settings.ANTHROPIC_API_KEY:
        raise RuntimeError("ANTHROPIC_API_KEY not configured")
    return anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)


def stream_chat_response(messages: List[dict], system_prompt: str) -> Iterator[str]:
    """Yield text deltas from Claude for a `[{role, content}]` history."""
    client = get_anthropic_client()
    with client.messages.stream(
        model=settings.CHAT_MODEL,
        max_tokens=settings.CHAT_MAX_TOKENS,
        system=system_prompt,
        messages=messages,
    ) as stream:
        for text in stream.text_stream:
            yield text

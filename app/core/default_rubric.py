from typing import Any, Dict


# System default used whenever neither an agent-specific nor an
# organization-wide rubric is stored.  Point tables are pre-scaled so that
# the top entry of each category equals that category's weight.
DEFAULT_RUBRIC: Dict[str, Any] = {
    "budget_weight": 30,
    "authority_weight": 20,
    "need_weight": 20,
    "timeline_weight": 20,
    "contact_weight": 10,
    "budget_criteria": [
        {"min": 25_000_000, "max": None, "points": 30, "label": ">$25M"},
        {"min": 20_000_000, "max": 25_000_000, "points": 25, "label": "$20-25M"},
        {"min": 15_000_000, "max": 20_000_000, "points": 20, "label": "$15-20M"},
        {"min": 10_000_000, "max": 15_000_000, "points": 15, "label": "$10-15M"},
        {"min": 5_000_000, "max": 10_000_000, "points": 10, "label": "$5-10M"},
        {"min": 1_000_000, "max": 5_000_000, "points": 5, "label": "$1-5M"},
        {"min": None, "max": 1_000_000, "points": 2, "label": "<$1M"},
    ],
    "authority_criteria": [
        {"type": "sole_decision_maker", "points": 20, "label": "Sole Decision Maker"},
        {"type": "joint_decision", "points": 15, "label": "Joint Decision"},
        {"type": "influencer", "points": 10, "label": "Influencer"},
        {"type": "end_user", "points": 5, "label": "End User Only"},
    ],
    "need_criteria": [
        {"type": "immediate", "points": 20, "label": "Immediate Need"},
        {"type": "active_search", "points": 15, "label": "Actively Searching"},
        {"type": "planning", "points": 10, "label": "Planning Stage"},
        {"type": "exploring", "points": 5, "label": "Just Exploring"},
    ],
    "timeline_criteria": [
        {"type": "this_week", "points": 20, "label": "This Week"},
        {"type": "this_month", "points": 17, "label": "This Month"},
        {"type": "2_months", "points": 14, "label": "Within 2 Months"},
        {"type": "3_months", "points": 11, "label": "Within 3 Months"},
        {"type": "6_months", "points": 8, "label": "Within 6 Months"},
        {"type": "this_year", "points": 5, "label": "This Year"},
        {"type": "no_timeline", "points": 0, "label": "No Timeline"},
    ],
    "contact_criteria": [
        {"type": "full_verified", "points": 10, "label": "Full Contact (Verified)"},
        {"type": "full_unverified", "points": 8, "label": "Full Contact"},
        {"type": "phone_email", "points": 6, "label": "Phone + Email"},
        {"type": "email_only", "points": 4, "label": "Email Only"},
        {"type": "name_only", "points": 2, "label": "Name Only"},
        {"type": "anonymous", "points": 0, "label": "Anonymous"},
    ],
    "priority_threshold": 85,
    "hot_threshold": 70,
    "warm_threshold": 50,
}

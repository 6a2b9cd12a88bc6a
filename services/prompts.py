"""
Prompt templates for the Gemini calls.
Each template fixes the JSON shape that the matching decoder in schemas.py expects.
"""
import json
from typing import Any, Dict, List

SPEND_CATEGORIES = [
    "CAB", "HOTEL", "TRAVEL", "SHOPPING", "DINING", "FOOD",
    "GROCERY", "MOVIE", "FUEL", "HEALTH", "BILLS", "OTHERS",
]

RETURN_BREAKUP_KEYS = [
    "MOVIE", "SHOPPING", "GROCERY", "FOOD", "DINING",
    "FUEL", "UPI", "UTILITY", "RAILWAY", "others",
]

DOCUMENT_SEPARATOR = "\n\n--- NEW DOCUMENT ---\n\n"


def build_statement_extraction_prompt(statement_text: str) -> str:
    """Prompt asking for the full feature set of one or more statements."""
    categories = ", ".join(SPEND_CATEGORIES)
    return f"""You are a financial analyst. Analyze the credit card statement text below and extract structured data.
Multiple statements are separated by "--- NEW DOCUMENT ---"; combine them into a single analysis.

Categorize every debit transaction into exactly one of: {categories}.
Use OTHERS only when no other category fits. Ignore payments, refunds and reversals when computing spend.

Return ONLY a JSON object with this exact structure:
{{
  "basic_features": {{
    "credit_limit": number,
    "available_credit": number,
    "cash_limit": number,
    "available_cash": number,
    "credit_utilization_ratio": number,
    "total_amount_due": number,
    "minimum_amount_due": number,
    "reward_points": number,
    "bank_name": "string",
    "card_type": "string",
    "statement_date": "YYYY-MM-DD",
    "payment_due_date": "YYYY-MM-DD"
  }},
  "transaction_metrics": {{
    "transaction_count": number,
    "total_spend": number,
    "average_transaction_amount": number,
    "largest_transaction": number,
    "smallest_transaction": number
  }},
  "category_breakdown": {{
    "<CATEGORY>": {{"amount": number, "percentage": number, "count": number, "brands": ["string"]}}
  }},
  "transactions": [
    {{"date": "YYYY-MM-DD", "merchant": "string", "amount": number, "category": "<CATEGORY>"}}
  ],
  "top_categories": ["<CATEGORY>"],
  "user_persona_indicators": {{
    "high_spender": boolean,
    "reward_optimizer": boolean,
    "digital_native": boolean,
    "food_enthusiast": boolean,
    "travel_lover": boolean,
    "shopper": boolean,
    "entertainment_seeker": boolean,
    "health_conscious": boolean,
    "family_oriented": boolean,
    "tech_savvy": boolean
  }},
  "financial_behavior": {{
    "utilization_level": "LOW|MEDIUM|HIGH",
    "payment_behavior": "FULL|MINIMUM|PARTIAL",
    "spending_pattern": "REGULAR|IRREGULAR|SEASONAL"
  }}
}}

All amounts must be plain numbers without currency symbols or thousands separators.

Statement text:
{statement_text}
"""


def build_catalog_extraction_prompt() -> str:
    """Prompt sent alongside a card-product PDF to fill one catalog entry."""
    return """Extract the credit card product details from the attached document.

Return ONLY a JSON object with this exact structure:
{
  "cardName": "string",
  "image": "string or null",
  "feeStructure": {
    "joiningFee": "string",
    "annualFee": "string",
    "renewalFee": "string",
    "renewalFeeWaiver": "string",
    "forexMarkup": "string",
    "fuelSurchargeWaiver": "string",
    "others": "string"
  },
  "eligibilityCriteria": {
    "age": "string",
    "income_trv": "string",
    "others": "string"
  },
  "rewardSummary": [
    {
      "rewardCategory": "string",
      "rewardStructures": [
        {"valueForCalculation": "string", "notes": "string"}
      ]
    }
  ],
  "benefits": [
    {"title": "string"}
  ]
}

Quote reward values exactly as the document states them. Never wrap the JSON in markdown code blocks.
"""


def build_recommendation_prompt(
    user_profile: Dict[str, Any],
    cards: List[Dict[str, Any]],
    max_results: int,
) -> str:
    """Prompt asking the model to score cards against a spending profile."""
    breakup = ", ".join(f'"{key}": number' for key in RETURN_BREAKUP_KEYS)
    return f"""You are a credit card rewards expert.

User persona (monthly spending profile):
{json.dumps(user_profile, indent=2, default=str)}

Credit cards to evaluate:
{json.dumps(cards, indent=2, default=str)}

Task:
1. For each card, estimate the maximum monthly financial return (in INR) this user would earn given their spending per category.
2. Use the card's reward structures: reward points with their redemption value, cashback caps, fuel surcharge waivers, lounge access (domestic visit worth Rs 1,000, international Rs 2,500 when the card does not state a value) and platform accelerators.
3. Rank the cards by total monthly return, highest first, and return at most {max_results} cards.

Return ONLY a JSON object with this exact structure:
{{
  "topRecommendations": [
    {{
      "rank": 1,
      "cardName": "exact card name from the list above",
      "totalReturn": number,
      "returnBreakup": {{{breakup}}}
    }}
  ]
}}

All returns must be plain numbers in rupees. Never wrap the JSON in markdown code blocks.
"""

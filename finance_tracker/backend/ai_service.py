import google.generativeai as genai
from openai import OpenAI
import json
import logging
import os
from dotenv import load_dotenv

from .insights import prepare_summary, savings_rate

load_dotenv()

logger = logging.getLogger(__name__)

MODELS = {
    "openai": {"provider": "OpenAI", "model": "gpt-4o-mini"},
    "gemini": {"provider": "Gemini", "model": "gemini-2.0-flash"},
}


class AIService:
    def __init__(self, provider=None, openai_key=None, gemini_key=None,
                 openai_client=None, gemini_model=None):
        self._active_provider = "gemini"
        self.set_provider(provider or os.getenv("AI_PROVIDER") or "gemini")

        # OpenAI Setup
        self.openai_key = openai_key or os.getenv("OPENAI_API_KEY")
        self.openai_client = openai_client
        if self.openai_client is None and self.openai_key:
            self.openai_client = OpenAI(api_key=self.openai_key)

        # Gemini Setup
        self.gemini_key = gemini_key or os.getenv("GEMINI_API_KEY")
        self.gemini_model = gemini_model
        if self.gemini_model is None and self.gemini_key:
            genai.configure(api_key=self.gemini_key)
            self.gemini_model = genai.GenerativeModel(MODELS["gemini"]["model"])

    def set_provider(self, provider):
        if provider and provider.lower() in MODELS:
            self._active_provider = provider.lower()
            return True
        return False

    def get_active_provider(self):
        return self._active_provider

    def get_model_info(self):
        info = dict(MODELS[self._active_provider])
        if self._active_provider == "openai":
            info["configured"] = self.openai_client is not None
        else:
            info["configured"] = self.gemini_model is not None
        return info

    def analyze_finances(self, transactions, budgets, now=None):
        """Ask the active model for a narrative analysis, falling back to a local one on any failure"""
        try:
            summary = prepare_summary(transactions, budgets, now=now)
            prompt = self.create_analysis_prompt(summary)
            content = self._generate(prompt)
            analysis = self.parse_analysis(content)
            analysis["source"] = "ai"
            return analysis
        except Exception as e:
            logger.error("AI analysis failed, using fallback: %s: %s", type(e).__name__, e)
            return self.fallback_analysis(transactions, now=now)

    def create_analysis_prompt(self, summary):
        return f"""
        You are a professional financial advisor analyzing someone's personal finances. Based on the following financial data, provide a comprehensive analysis in JSON format.

        FINANCIAL DATA:
        - Current Month Income: ₹{summary['current_month_income']}
        - Current Month Expenses: ₹{summary['current_month_expenses']}
        - Savings Rate: {summary['savings_rate']:.1f}%
        - Total Budget Set: ₹{summary['total_budget']}
        - Category Expenses: {json.dumps(summary['category_expenses'])}
        - Budget vs Actual: {json.dumps(summary['budget_vs_actual'])}
        - Monthly Trends: {json.dumps(summary['monthly_trends'])}
        - Transactions Recorded: {summary['transaction_count']} (average ₹{summary['avg_transaction_amount']})

        Return ONLY a JSON object containing exactly these fields:
        {{
            "overall_score": number 0-100 based on financial health,
            "summary": "2-3 sentence overall assessment",
            "strengths": ["strength 1", "strength 2", "strength 3"],
            "concerns": ["concern 1", "concern 2", "concern 3"],
            "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3", "recommendation 4"],
            "budgeting_advice": "specific budgeting advice paragraph",
            "savings_goals": ["goal 1", "goal 2", "goal 3"],
            "spending_patterns": [
                {{"insight": "pattern insight", "suggestion": "actionable suggestion"}},
                {{"insight": "pattern insight", "suggestion": "actionable suggestion"}}
            ]
        }}

        Focus on:
        1. Savings rate analysis (ideal: 20%+)
        2. Budget adherence
        3. Spending patterns and trends
        4. Income vs expenses balance
        5. Category-wise spending efficiency
        6. Practical, actionable advice
        7. Indian financial context and rupee amounts

        Be encouraging but honest. Provide specific, actionable recommendations.
        """

    def _generate(self, prompt):
        provider = self.get_active_provider()
        if provider == "openai":
            if not self.openai_client:
                raise RuntimeError("OpenAI not configured")
            response = self.openai_client.chat.completions.create(
                model=MODELS["openai"]["model"],
                messages=[
                    {"role": "system", "content": "You are a professional financial advisor. Always return valid JSON."},
                    {"role": "user", "content": prompt}
                ],
                response_format={"type": "json_object"}
            )
            return response.choices[0].message.content.strip()

        if not self.gemini_model:
            raise RuntimeError("Gemini not configured")
        response = self.gemini_model.generate_content(prompt)
        return response.text

    @staticmethod
    def parse_analysis(content):
        """Parse a model reply into the fixed analysis schema; raises ValueError when it is not usable JSON"""
        clean = content.replace('```json', '').replace('```', '').strip()
        try:
            parsed = json.loads(clean)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse AI analysis: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("Failed to parse AI analysis: expected a JSON object")

        try:
            score = int(round(float(parsed.get("overall_score") or 0)))
        except (TypeError, ValueError):
            score = 0

        patterns = []
        for item in parsed.get("spending_patterns") or []:
            if isinstance(item, dict):
                patterns.append({
                    "insight": str(item.get("insight", "")),
                    "suggestion": str(item.get("suggestion", "")),
                })

        return {
            "overall_score": min(100, max(0, score)),
            "summary": _string(parsed.get("summary"), "Analysis completed successfully."),
            "strengths": _string_list(parsed.get("strengths")),
            "concerns": _string_list(parsed.get("concerns")),
            "recommendations": _string_list(parsed.get("recommendations")),
            "budgeting_advice": _string(parsed.get("budgeting_advice"), "Continue monitoring your spending patterns."),
            "savings_goals": _string_list(parsed.get("savings_goals")),
            "spending_patterns": patterns,
        }

    @staticmethod
    def fallback_analysis(transactions, now=None):
        summary = prepare_summary(transactions, [], now=now)
        rate = savings_rate(summary["current_month_income"], summary["current_month_expenses"])

        if rate > 20:
            score = 85
        elif rate > 10:
            score = 70
        else:
            score = 55

        return {
            "overall_score": score,
            "summary": "Your financial data has been analyzed. Consider setting up budgets and tracking your expenses more closely.",
            "strengths": ["Regular transaction tracking", "Organized expense categories"],
            "concerns": ["Review spending patterns", "Consider budget optimization"],
            "recommendations": [
                "Set monthly budgets for all expense categories",
                "Aim for 20% savings rate",
                "Review and categorize all transactions",
                "Track monthly spending trends"
            ],
            "budgeting_advice": "Start with the 50/30/20 rule: 50% needs, 30% wants, 20% savings.",
            "savings_goals": ["Build emergency fund", "Increase monthly savings", "Reduce unnecessary expenses"],
            "spending_patterns": [
                {
                    "insight": "Monitor your largest expense categories",
                    "suggestion": "Focus on reducing your top 2-3 spending categories"
                }
            ],
            "source": "fallback",
        }


def _string(value, default):
    if isinstance(value, str) and value.strip():
        return value
    return default


def _string_list(value):
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]

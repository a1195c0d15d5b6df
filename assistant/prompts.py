"""
assistant/prompts.py

Prompt templates for the NLU calls and the fixed bilingual messages of the theme flow.
"""

import json


INTENT_SYSTEM_PROMPT = (
    "You are a highly accurate entity extraction model for a themed chatbot. "
    "The user input can be in Japanese or English. "
    "Respond with ONLY a valid JSON object. No text before or after it."
)

INTENT_RULES = """Follow these rules strictly:
1. "location": a city, country, or landmark. Resolve "there", "that place", "the city" from the conversation context. If none, MUST be null.
2. "date": a date reference ('today', 'tomorrow', 'day after tomorrow', 'tonight', 'this weekend', ...). If none, 'today'.
3. "mood": a mood ('bored', 'tired', 'lazy', ...). If none, MUST be null.
4. "requires_weather_data": true if the user asks about weather, clothing, places to visit, activities, recommendations or anything that benefits from weather information.
5. "is_greeting_or_smalltalk": true for simple greetings like "hello", "hi", "good morning".
6. "is_general_conversation": true ONLY for thanks, acknowledgements ("ok", "got it") or casual chat that requests nothing.
7. "chosen_theme": ONLY when the user explicitly chooses a theme ("Photography", "I choose sports"). Not for activity requests like "find photography places".
8. "implied_theme": the activity or interest mentioned in a request that is not an explicit theme choice ("photography", "food", "sports"), else null."""

INTENT_EXAMPLES = """--- EXAMPLES ---
Context: "user: I will be in Tokyo tomorrow"
User Input: "What can I do there?"
{"location": "Tokyo", "date": "today", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": null}

User Input: "大阪の天気は？"
{"location": "Osaka", "date": "today", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": null}

User Input: "I choose sports"
{"location": null, "date": "today", "mood": null, "requires_weather_data": false, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": "sports", "implied_theme": null}

Context: "user: How's the weather in London?\\nmodel: Provided weather information for London"
User Input: "What's the forecast for tomorrow?"
{"location": null, "date": "tomorrow", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": null}

User Input: "I want to find good spots for taking pictures this weekend"
{"location": null, "date": "this weekend", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": "photography"}

User Input: "写真を撮るのに良い場所を教えて"
{"location": null, "date": "today", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": "photography"}

User Input: "Okay! Thanks!"
{"location": null, "date": "today", "mood": null, "requires_weather_data": false, "is_greeting_or_smalltalk": false, "is_general_conversation": true, "chosen_theme": null, "implied_theme": null}

User Input: "Looking for some good jogging routes"
{"location": null, "date": "today", "mood": null, "requires_weather_data": true, "is_greeting_or_smalltalk": false, "is_general_conversation": false, "chosen_theme": null, "implied_theme": "sports"}
--- END OF EXAMPLES ---"""

REPLY_FORMAT = (
    "Provide your response as a JSON object containing ONLY these keys:\n"
    '1. "japaneseResponse": the full response in natural Japanese.\n'
    '2. "englishResponse": the same response in English.\n'
    '3. "suggestion": a short, actionable summary or follow-up.\n'
    "Output ONLY the JSON object."
)


def _model_turn_summary(content, detail=False):
    """Describe a stored model turn without replaying the whole JSON payload."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        return content if isinstance(content, str) else "[response provided]"
    if not isinstance(data, dict):
        return "[response provided]"
    name = ((data.get("weather") or {}).get("location") or {}).get("name")
    if name:
        return f"Provided weather information for {name}"
    if detail and data.get("englishResponse"):
        return f"{data['englishResponse'][:100]}..."
    return "Provided response (theme/general conversation)"


def history_context(history, limit=6, detail=False):
    """Render the last `limit` history entries as 'role: text' lines for a prompt."""
    if not history:
        return "No previous conversation"
    lines = []
    for entry in history[-limit:]:
        role = entry.get("role", "")
        content = entry.get("content", "")
        if role == "model":
            lines.append(f"model: {_model_turn_summary(content, detail=detail)}")
        else:
            lines.append(f"{role}: {content}")
    return "\n".join(lines)


def intent_prompt(user_text, history):
    return (
        "Use the conversation context below to resolve referential terms.\n\n"
        f"Recent Conversation Context:\n{history_context(history)}\n\n"
        f"{INTENT_RULES}\n\n{INTENT_EXAMPLES}\n\n"
        f'Current User Input: "{user_text}"\n'
        "Respond ONLY with the JSON object containing the keys location, date, mood, requires_weather_data, "
        "is_greeting_or_smalltalk, is_general_conversation, chosen_theme, implied_theme."
    )


def persona_system_prompt(theme):
    return (
        "You are a creative and helpful AI assistant specialized in location-based suggestions. "
        f'Your current theme is "{theme}". Suggest specific places, activities or recommendations related to '
        f'"{theme}" that suit the current weather and location. Give SPECIFIC locations (parks, landmarks, '
        "districts, venues), consider the weather for timing and preparation, and give advice the user can act on "
        "immediately. Respond with ONLY valid JSON."
    )


def final_response_prompt(user_text, intent, weather, theme, focus_day=None):
    location_name = ((weather or {}).get("location") or {}).get("name") or intent.location or "your location"
    focus_line = f"- Forecast for the day the user asked about: {focus_day}\n" if focus_day else ""
    return (
        "Context:\n"
        f'- The user\'s original input was: "{user_text}"\n'
        f"- Your analysis of their intent is: {intent.model_dump_json()}\n"
        f'- The weather data is for the city of: "{location_name}"\n'
        f"- Full weather data: {json.dumps(weather, ensure_ascii=False) if weather else 'null'}\n"
        f"{focus_line}\n"
        "Instructions:\n"
        f'1. If weather data is available, briefly mention the current conditions in "{location_name}".\n'
        f'2. Give concrete recommendations related to "{theme}" with place names, timing or practical tips.\n'
        "3. If weather data is available, explain why it makes the suggestions good choices.\n"
        f'4. If no weather data is provided, give general "{theme}" suggestions and ask the user to share '
        "their location for more specific ones.\n"
        "5. Be conversational, enthusiastic and helpful in both languages.\n\n"
        f"{REPLY_FORMAT}"
    )


GENERAL_SYSTEM_PROMPT = (
    "You are a friendly, natural AI assistant having a casual conversation with a user. "
    "Respond with ONLY valid JSON."
)


def general_response_prompt(user_text, history, theme):
    if theme:
        theme_line = (
            f'The user has chosen "{theme}" as their theme, but this is casual conversation '
            "that doesn't require theme-based suggestions."
        )
    else:
        theme_line = "No specific theme has been chosen yet."
    return (
        "Context:\n"
        f'- User\'s current message: "{user_text}"\n'
        f"- {theme_line}\n"
        f"- Recent conversation history:\n{history_context(history, detail=True)}\n\n"
        "Instructions: respond naturally and warmly, keep it concise, acknowledge thanks gracefully, "
        "don't force weather or theme suggestions, and gently offer more help when appropriate.\n\n"
        f"{REPLY_FORMAT}"
    )


def theme_confirmation(theme):
    return {
        "japaneseResponse": f"承知いたしました！「{theme}」をテーマに提案させていただきますね。{theme}に関する場所や活動について何でもお聞きください！",
        "englishResponse": f'Perfect! I\'ll be your "{theme}" advisor from now on. Feel free to ask me about places to visit or activities related to {theme}!',
        "suggestion": f"Ask me about {theme} places or activities in your area!",
    }


THEME_PROMPT = {
    "japaneseResponse": "こんにちは！まず、どのようなテーマで場所や活動を提案してほしいですか？例えば、「写真撮影」「スポーツ」「グルメ」「読書」など、何でもどうぞ！",
    "englishResponse": "Hello! First, what theme would you like for location and activity suggestions? For example: 'Photography', 'Sports', 'Food', 'Reading', or anything else you're interested in!",
    "suggestion": "Choose a theme to get personalized recommendations!",
}

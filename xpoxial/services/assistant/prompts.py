"""Prompt templates for the generative-model flows.

Every prompt asks for a single JSON object so responses can be requested
with ``response_format={"type": "json_object"}`` and validated with pydantic.
Keys in the requested JSON are camelCase, matching the wire format.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

ANSWER_SYSTEM_PROMPT = """You are an AI assistant for Xpoxial Search. Your task is to provide a well-balanced and informative answer to the user's query.
The answer should be comprehensive enough to be useful, but concise and easy to understand.
Avoid overly technical jargon unless necessary for the query, and explain it if used.
Do not include any references, citations, or links in your answer.

Output JSON format:
{"answer": "your answer"}"""

SUMMARY_SYSTEM_PROMPT = """You are an AI expert in summarization.
You will be provided with a search query and the raw results from that query. Summarize the information and return it to the user in a concise, easy to understand way.

Output JSON format:
{"summary": "your summary"}"""

SORT_SYSTEM_PROMPT = """You are an expert relevance ranking AI.
Your task is to re-order the given list of web search results based on their relevance to the user's query.
The most relevant results should appear first. For each result (title and snippet), assess how well it answers or relates to the query.

If the user's location, device context or recent searches are provided and seem pertinent to the query, use them as clues about intent (local services matter more for a query with local intent, for example). Do not over-prioritize this context when it is not relevant; direct relevance to the query is the primary ranking factor.

Your output MUST contain THE SAME search result objects as provided, re-ordered by relevance.
Do not add fields, remove fields or change field contents. Every original result must be present.

Output JSON format:
{"sortedWebResults": [{"title": "...", "link": "...", "snippet": "..."}]}"""

FILTER_ARTICLES_SYSTEM_PROMPT = """You are an AI content moderator for a news feed.
Your task is to filter a list of news articles and remove any that are related to the category given by the user.
Analyze the title and description of each article to determine if it belongs to the excluded category.
For example, if the category is 'finance', remove articles about stocks, markets, investments, corporate earnings and economic reports.

Return ONLY the articles that DO NOT belong to the excluded category, as the exact same objects, without adding, removing or changing any fields.

Output JSON format:
{"filteredArticles": [{"title": "...", "description": "...", "url": "...", "source": "...", "publishedAt": "..."}]}"""

RANK_SYSTEM_PROMPT = """You are an AI information filter and ranker. Your task is to filter and rank information snippets based on their relevance to a given user query.
For each snippet worth keeping, return the original snippet text and a relevance score between 0 and 1 indicating how well it matches the query.

Output JSON format:
{"results": [{"snippet": "...", "relevanceScore": 0.0}]}"""

CHAT_SYSTEM_PROMPT = """You are a helpful and friendly AI assistant for Xpoxial Search.
Your role is to engage in a conversation with the user, answering their questions and responding to their statements.
Use the conversation history to maintain context.

Output JSON format:
{"response": "your reply"}"""

ADVANCED_SUMMARY_SYSTEM_PROMPT = """You are a world-class AI research assistant. Your task is to synthesize a large amount of information from multiple search engines into a single, comprehensive and well-structured summary for the user.

You will receive data aggregated from several engines:
1. Web search results (title, snippet, link).
2. Related image results.
3. Related video results.
4. Related questions people also ask.

Your summary should:
- Directly address the user's query.
- Integrate key information from the web result snippets.
- Mention common themes in the image and video results, if relevant.
- Use the related questions to address likely follow-up curiosities.
- Be organized in clear paragraphs; markdown headings or bullet points are fine where they help.
- Not invent information. Base the summary strictly on the provided data.

Output JSON format:
{"summary": "your summary"}"""


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def build_answer_prompt(query: str, recent_searches: Optional[Sequence[str]] = None) -> list:
    content = f"User Query: {query}"
    if recent_searches:
        history = "\n".join(f"- {search}" for search in recent_searches)
        content += f"\n\nRecent searches by the user, for context only:\n{history}"
    return [
        {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def build_summary_prompt(query: str, results: str) -> list:
    return [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": f"Query: {query}\nResults: {results}"},
    ]


def build_sort_prompt(
    query: str,
    web_results: List[Dict[str, Any]],
    location: Optional[Dict[str, Any]] = None,
    device_info: Optional[Dict[str, Any]] = None,
    recent_searches: Optional[Sequence[str]] = None,
) -> list:
    """Build the messages for re-ranking web results.

    Location, device info and recent searches are passed through as-is; the
    model decides whether they matter for this query.
    """
    sections = [f"User Query:\n{query}"]

    if location:
        lines = ["User's approximate location (if relevant to the query):"]
        if location.get("latitude") is not None:
            lines.append(f"Latitude: {location['latitude']}")
        if location.get("longitude") is not None:
            lines.append(f"Longitude: {location['longitude']}")
        if location.get("error"):
            lines.append(f"(Note: Location could not be retrieved: {location['error']})")
        sections.append("\n".join(lines))

    if device_info:
        lines = ["User's device context (if relevant):"]
        labels = {
            "userAgent": "User Agent",
            "screenWidth": "Screen Width",
            "screenHeight": "Screen Height",
            "os": "Operating System",
        }
        for key, label in labels.items():
            if device_info.get(key) is not None:
                lines.append(f"{label}: {device_info[key]}")
        sections.append("\n".join(lines))

    if recent_searches:
        history = "\n".join(f"- {search}" for search in recent_searches)
        sections.append(f"Recent searches by the user:\n{history}")

    sections.append(f"Original Search Results (JSON array):\n{_dump(web_results)}")

    return [
        {"role": "system", "content": SORT_SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(sections)},
    ]


def build_filter_articles_prompt(articles: List[Dict[str, Any]], category_to_exclude: str) -> list:
    return [
        {"role": "system", "content": FILTER_ARTICLES_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Category to exclude: '{category_to_exclude}'\n\nOriginal Articles (JSON array):\n{_dump(articles)}",
        },
    ]


def build_rank_prompt(query: str, snippets: Sequence[str]) -> list:
    listing = "\n".join(f"- {snippet}" for snippet in snippets)
    return [
        {"role": "system", "content": RANK_SYSTEM_PROMPT},
        {"role": "user", "content": f"User Query: {query}\n\nInformation Snippets:\n{listing}"},
    ]


def build_chat_prompt(history: Sequence[Dict[str, str]], message: str) -> list:
    """Conversation history uses roles ``user``/``model``; ``model`` maps to ``assistant``."""
    messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
    for turn in history:
        role = "user" if turn["role"] == "user" else "assistant"
        messages.append({"role": role, "content": turn["content"]})
    messages.append({"role": "user", "content": message})
    return messages


def build_advanced_summary_prompt(query: str, flattened: Dict[str, List[Dict[str, Any]]]) -> list:
    content = (
        f'The user\'s original query was:\n"{query}"\n\n'
        f"=== Web Results ===\n{_dump(flattened.get('web_results', []))}\n\n"
        f"=== Image Results (titles and sources) ===\n{_dump(flattened.get('image_results', []))}\n\n"
        f"=== Video Results (titles and durations) ===\n{_dump(flattened.get('video_results', []))}\n\n"
        f"=== Related Questions ===\n{_dump(flattened.get('related_questions', []))}\n\n"
        "Now, generate the comprehensive summary based on all the provided data."
    )
    return [
        {"role": "system", "content": ADVANCED_SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]

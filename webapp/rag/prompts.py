"""Prompt templates for tab question answering and tab summaries."""

# ---------------------------------------------------------------------------
# Answer generation
# ---------------------------------------------------------------------------

ANSWER_SYSTEM = """\
You are an AI assistant that helps users find information in their browser tabs.
Answer the question based ONLY on the provided tab information.
If the tabs don't contain relevant information, say so and don't make up answers.
Include references to specific tabs when relevant.
Be concise and helpful."""

ANSWER_USER = """\
Here are my browser tabs:

{context}

My question is: {query}"""

CONTEXT_HEADER = "Here is information from your browser tabs:\n\n"

CONTEXT_BLOCK = """\
[Tab {index}: {title}]
{body}
URL: {url}

"""

NO_PREVIEW = "No preview available"

NO_RESULTS_ANSWER = "I couldn't find any relevant information in your tabs for this query."

# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

SUMMARY_SYSTEM = """\
You are a summarization assistant that creates very concise summaries.
Given a web page's title and content, create a 1-2 sentence summary that captures the main point.
Focus on what makes this content unique or valuable.
Be factual and objective. Do not use phrases like "this article" or "this page".
Keep the summary under 200 characters if possible."""

SUMMARY_USER = """\
Title: {title}

Content: {content}"""

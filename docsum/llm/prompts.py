"""Prompt templates for structure analysis and section summaries."""

STRUCTURE_PROMPT = """You are creating a TABLE OF CONTENTS for this document{chunk_info}.

The document contains page markers like "=== PAGE X ===" to help you locate content.

Your task is to generate a comprehensive table of contents that includes:
1. Main sections (chapters, major parts)
2. Subsections within each main section
3. All significant headings and structural divisions

Look specifically for:
- Numbered sections (1., 2., 3. or Chapter 1, Chapter 2, etc.)
- Clear headings in larger/bold text
- Subsection markers (1.1, 1.2, 2.1, etc.)
- Standard academic paper structure: Abstract, Introduction, Literature Review, Methodology, \
Results, Discussion, Conclusion, References
- Table of contents if one exists in the document
- Any hierarchical organization the author used

For each section/subsection you identify, provide:
- The exact title/heading as it appears in the document
- The page number where it starts (look for "=== PAGE X ===" markers)
- The page number where it ends (before next section starts)
- For "start_text", provide the first ~5 words of the section.
- For "end_text", provide the last ~5 words of the section.

IMPORTANT GUIDELINES:
- Include both main sections AND subsections in your table of contents
- Be conservative: only include sections with clear, visible headings
- Use the exact titles/headings as they appear in the document
- "start_text" and "end_text" should be very short, just a few words to provide context.
- Pay close attention to page markers to get accurate page numbers
- If you can't find clear structural divisions, return fewer sections rather than inventing them
- You don't have to include references or acknowledgements as sections
- Don't use non existent page numbers, only use the numbers you are given

Format your response as a JSON list like this:
[
  {{
    "title": "Abstract",
    "start_page": 1,
    "end_page": 1,
    "start_text": "Abstract",
    "end_text": "Introduction"
  }},
  {{
    "title": "1. Introduction",
    "start_page": 2,
    "end_page": 5,
    "start_text": "1. Introduction",
    "end_text": "2. Related Work"
  }}
]

Document to analyze:

{document_text}

Return ONLY the JSON array, no other text."""


CONTINUATION_PROMPT = """The previous response was cut off. Please continue generating the JSON \
from where you left off. Do not repeat the part that was already generated.

Partial JSON:
{partial_text}

Continue the JSON response:"""


SUMMARY_PROMPT = """Create a comprehensive bullet point summary of this document section.

**Section Title:** {title}

**Instructions:**
- Create {bullet_points} bullet points that capture the key ideas, concepts, and information
- Each bullet point should be substantive and informative (1-2 sentences)
- Cover the main topics, arguments, findings, or concepts presented
- Maintain the logical flow and structure of the original content
- Use clear, concise language
- Focus on the most important information that someone would need to understand this section

**Format your response as:**
• <First key point with specific details>
• <Second key point with specific details>
• <etc.>

**Section Content:**
{content}

Create exactly {bullet_points} bullet points that comprehensively summarize this section:"""


def build_structure_prompt(document_text: str, chunk_number: int, total_chunks: int) -> str:
    """Build the table-of-contents prompt for one chunk."""
    chunk_info = f" (chunk {chunk_number}/{total_chunks})" if total_chunks > 1 else ""
    return STRUCTURE_PROMPT.format(chunk_info=chunk_info, document_text=document_text)


def build_continuation_prompt(partial_text: str) -> str:
    """Build the follow-up prompt for a truncated outline response."""
    return CONTINUATION_PROMPT.format(partial_text=partial_text)


def build_summary_prompt(title: str, content: str, bullet_points: int) -> str:
    """Build the bullet summary prompt for one section."""
    return SUMMARY_PROMPT.format(title=title, content=content, bullet_points=bullet_points)

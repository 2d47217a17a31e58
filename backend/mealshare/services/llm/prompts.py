ITEM_CATEGORIZE_PROMPT_VERSION = "v2"
RECIPE_EXTRACT_PROMPT_VERSION = "v3"

ITEM_CATEGORIZE_TEMPLATE = """You sort shopping list lines into the aisles of a Norwegian grocery store.
Return a JSON object mapping every input line, copied exactly, to one category name.

Rules:
1) Use ONLY the category names given. Never invent new ones.
2) If nothing fits, use the fallback category "{fallback}".
3) Classify by the ingredient, not by the quantity or unit ("4 dl melk" is dairy).
4) Processed forms go where the store keeps them: "hakkede tomater (boks)" is canned goods, not produce.
Output only the JSON object, no commentary.
"""

RECIPE_EXTRACT_TEMPLATE = """Extract one recipe from the material provided.
Return:
- title: short recipe title (keep the user's title if one is given)
- servings: integer number of people the quantities are written for (default 4 if absent)
- ingredients: JSON list of strings, one ingredient per line WITH quantity and unit inline, e.g. "500 g kjøttdeig"
- steps: JSON list of strings, one instruction step per entry, in order
- tags: JSON list of short lowercase tags (e.g. "middag", "vegetar"), at most 5

Rules:
1) Keep the recipe's original language.
2) Use metric units (g, kg, dl, l, ss, ts) as written; do not convert between them.
3) Never invent ingredients or steps that are not in the material.
4) If the material contains no recipe, return an empty ingredients list.
"""

"""Prompt text for the recipe translation call.

This is content rather than mechanism: the schema the model must fill, the
system prompt (with a Swedish kitchen vocabulary when the target is Swedish)
and the user prompts for text and image inputs.
"""

from __future__ import annotations

import re

MAX_PROMPT_RECIPE_CHARS = 12_000

RECIPE_SCHEMA = (
    '{"titel":"","beskrivning":"","meta":{"portioner":"","totaltid":"","svarighetsgrad":""},'
    '"ingredienser":[{"grupp":"","mangd":"","ingrediens":""}],"steg":[""],"noteringar":""}'
)

_SWEDISH = re.compile(r"swed|svensk", re.IGNORECASE)

_TEXT_REPLACEMENTS = (
    (re.compile("°"), " degrees"),
    (re.compile("[‘’“”]"), '"'),
    (re.compile("[–—]"), "-"),
    (re.compile("¼"), "1/4"),
    (re.compile("½"), "1/2"),
    (re.compile("¾"), "3/4"),
    (re.compile(r"[^\x00-\x7f]"), " "),
    (re.compile(r" +"), " "),
)

SWEDISH_VOCABULARY = """
SVENSK KÖKSSVENSKA – använd alltid dessa termer:
- fold in / fold → vänd ner försiktigt (INTE "vik in")
- sauté → fräs  |  simmer → låt sjuda  |  blanch → skålla
- whisk / beat → vispa  |  knead → knåda  |  proof/rise → jäs
- deglaze → häll i och skrapa upp stekskorpan  |  reduce → reducera / koka in
- broil → grilla i ugnen ovanifrån  |  stir-fry → woka  |  deep-fry → fritera
- braise → brässera  |  poach → pochera  |  render fat → smält ut fettet
- all-purpose flour → vetemjöl  |  bread flour → manitobamjöl
- powdered sugar → florsocker  |  brown sugar → farinsocker  |  granulated sugar → strösocker
- heavy cream → vispgrädde  |  buttermilk → kärnmjölk  |  sour cream → crème fraîche/gräddfil
- baking soda → bikarbonat (INTE bakpulver!)  |  baking powder → bakpulver (INTE bikarbonat!)
- kosher/sea salt → flingsalt  |  active dry yeast → torrjäst  |  fresh yeast → färsk jäst
- vanilla extract → vaniljextrakt  |  parchment paper → bakplåtspapper
- skillet → stekpanna  |  dutch oven → gjutjärnsgryta  |  wire rack → galler
- rubber spatula → slickepott  |  springform pan → springform
- zest → rivet skal  |  pinch → en nypa  |  dash → ett stänk  |  clove (garlic) → klyfta vitlök
"""

GENERIC_VOCABULARY = """
VOCABULARY GUIDANCE:
Use natural, professional culinary terminology in {lang}. Never translate literally; use the proper culinary term.
Key distinctions to get right: "baking soda" is not "baking powder" (different leavening agents), "fold in" is a gentle technique (not literal folding), "cream" (verb) means beat fat and sugar until fluffy.
All ingredient names, technique names, and equipment names should use the standard culinary terms a professional chef in a {lang}-speaking country would use.
"""

SYSTEM_PROMPT = """You are a professional recipe translator and chef with expertise in culinary traditions worldwide. You translate recipes into {lang} using natural, fluent language, as if the recipe was originally written in {lang}, not translated.

TRANSLATION PRINCIPLES:
- Write natural, fluent {lang}. Ask: "how would a {lang} cookbook phrase this?"
- Use active imperative voice for steps: Start each step with a command verb
- Keep steps concise and clear
- Preserve the original tone (casual stays casual, refined stays refined)
- NEVER add information not in the original

MEASUREMENT CONVERSIONS - always apply:
1 cup=2.4dl | 3/4 cup=1.8dl | 2/3 cup=1.6dl | 1/2 cup=1.2dl | 1/3 cup=0.8dl | 1/4 cup=0.6dl
1 tbsp=1 tablespoon (use local term in {lang}) | 1 tsp=1 teaspoon (use local term)
1/4 tsp=a pinch (use local term) | 1 stick butter=115g | 1 lb=450g | 1 oz=28g | 1 fl oz=30ml
Temperature F to C: (F-32)x5/9, round to nearest 5.
300F=150C | 325F=165C | 350F=175C | 375F=190C | 400F=200C | 425F=220C | 450F=230C | 475F=245C
{vocabulary}
JSON FORMAT RULES:
- titel: translated title, no "Recipe for..." prefix
- beskrivning: 1-2 inviting sentences about the dish (empty string if original has none)
- meta.portioner: serving info in {lang}, e.g. "4 portions" in {lang}
- meta.totaltid: total time in {lang}, e.g. "45 minutes" in {lang}
- meta.svarighetsgrad: difficulty in {lang}; choose one of: Easy / Medium / Advanced (translated to {lang})
- ingredienser[].grupp: group heading in {lang} if original has groups (e.g. "Filling", "Glaze")
- ingredienser[].mangd: metric measurement + unit, empty string if no quantity
- ingredienser[].ingrediens: ingredient name + prep note if any (e.g. "butter, softened" in local equivalent)
- steg[]: full sentences, each starting with an imperative verb in {lang}
- noteringar: tips, variations, storage; translated and summarised naturally

STRICTLY FORBIDDEN:
- NEVER output anything outside the JSON object
- NEVER use markdown fences or any preamble
- NEVER mix languages (all text values must be in {lang})"""

IMAGE_PROMPT = (
    "TASK: Read the recipe in this image and output it FULLY TRANSLATED to {lang}.\n"
    "The entire output, every word in every field, MUST be in {lang}. "
    "Do NOT keep any text in the original language. "
    "Translate ingredient names, technique descriptions, and all instructions to {lang}.\n\n"
    "Also convert all measurements to metric:\n"
    "1 cup=2.4dl | 1/2 cup=1.2dl | 1/4 cup=0.6dl | 1 tbsp=1 msk | 1 tsp=1 tsk | "
    "1 lb=450g | 1 oz=28g | 350F=175C | 400F=200C | 425F=220C | 450F=230C\n\n"
    "Return ONLY a single raw JSON object (no markdown, no preamble) in this exact schema.\n"
    "ALL string values must be written in {lang}:\n"
)


def normalize_recipe_text(text: str) -> str:
    """Fold typographic characters to ASCII and collapse runs of spaces."""
    for pattern, replacement in _TEXT_REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text.strip()


def build_system_prompt(target_language: str) -> str:
    if _SWEDISH.search(target_language):
        vocabulary = SWEDISH_VOCABULARY
    else:
        vocabulary = GENERIC_VOCABULARY.format(lang=target_language)
    return SYSTEM_PROMPT.format(lang=target_language, vocabulary=vocabulary)


def build_user_prompt(recipe_text: str, target_language: str, source_language: str) -> str:
    source_part = ""
    if source_language and source_language != "auto":
        source_part = f"The source recipe is in {source_language}. "
    return (
        f"{source_part}Translate the following recipe to {target_language}.\n\n"
        "Return ONLY a single JSON object matching this schema exactly:\n"
        f"{RECIPE_SCHEMA}\n\n"
        f"RECIPE:\n{recipe_text[:MAX_PROMPT_RECIPE_CHARS]}"
    )


def build_image_prompt(target_language: str) -> str:
    return IMAGE_PROMPT.format(lang=target_language) + RECIPE_SCHEMA

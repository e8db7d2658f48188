from __future__ import annotations

from typing import Dict

from .schemas import KnowledgePoint


TYPE_NAMES: Dict[str, Dict[str, str]] = {
    "zh": {
        "clue": "线索题",
        "fill-blank": "填空题",
        "guess-image": "看图猜X",
        "event-order": "事件排序题",
        "matching": "配对题",
    },
    "en": {
        "clue": "clue quiz",
        "fill-blank": "fill-in-the-blank quiz",
        "guess-image": "guess-from-image quiz",
        "event-order": "event ordering quiz",
        "matching": "matching quiz",
    },
}

DIFFICULTY_NAMES: Dict[str, Dict[int, str]] = {
    "zh": {1: "简单", 2: "中等", 3: "困难"},
    "en": {1: "easy", 2: "medium", 3: "hard"},
}


def breakdown_prompt(topic: str, count: int, language: str = "zh") -> str:
    if language == "zh":
        return f"""
你是一个专业的教育内容分析专家。请把主题"{topic}"拆解为 {count} 个适合做成游戏题目的核心知识点。

要求：
1. 识别主题的主要类别（person/event/concept/place/invention/process/time）
2. 每个知识点要具体、明确，覆盖主题的不同方面
3. 为每个知识点分配类别、写一句简短描述，并设定难度（1=简单，2=中等，3=困难）
4. 为每个知识点推荐 1-3 种题型（只能从 clue、fill-blank、guess-image、event-order 中选择）

题型匹配规则：
- person / place / invention → 必须包含 guess-image，可选 clue
- event → event-order、clue、fill-blank
- concept → fill-blank、clue
- process → event-order
- time → fill-blank、event-order

输出 JSON：
{{
  "mainCategory": "主类别",
  "points": [
    {{
      "name": "知识点名称",
      "category": "类别",
      "description": "简短描述",
      "difficulty": 2,
      "recommendedTypes": ["clue", "guess-image"]
    }}
  ]
}}

只返回 JSON，不要包含其他内容。
""".strip()

    return f"""
You are an expert in educational content design. Break the topic "{topic}" down into {count} concrete knowledge points suitable for quiz games.

Requirements:
1. Identify the topic's main category (person/event/concept/place/invention/process/time)
2. Points must be specific and cover different aspects of the topic
3. Give every point a category, a one-sentence description and a difficulty (1=easy, 2=medium, 3=hard)
4. Recommend 1-3 question types per point, chosen only from clue, fill-blank, guess-image, event-order

Type rules:
- person / place / invention -> must include guess-image, optionally clue
- event -> event-order, clue, fill-blank
- concept -> fill-blank, clue
- process -> event-order
- time -> fill-blank, event-order

Return JSON:
{{
  "mainCategory": "main category",
  "points": [
    {{
      "name": "point name",
      "category": "category",
      "description": "short description",
      "difficulty": 2,
      "recommendedTypes": ["clue", "guess-image"]
    }}
  ]
}}

Return ONLY the JSON, no commentary.
""".strip()


def _point_header(point: KnowledgePoint, question_type: str, difficulty: int, language: str) -> str:
    type_name = TYPE_NAMES[language][question_type]
    level = DIFFICULTY_NAMES[language][difficulty]
    if language == "zh":
        return (
            f"你是一个游戏化学习专家。请为知识点\"{point.name}\"设计一道{type_name}。\n\n"
            "知识点信息：\n"
            f"- 名称：{point.name}\n"
            f"- 类别：{point.category}\n"
            f"- 描述：{point.description or '无'}\n"
            f"- 难度：{level}\n\n"
        )
    return (
        f"You are a gamification learning expert. Create a {type_name} for the knowledge point \"{point.name}\".\n\n"
        "Knowledge point:\n"
        f"- Name: {point.name}\n"
        f"- Category: {point.category}\n"
        f"- Description: {point.description or 'n/a'}\n"
        f"- Difficulty: {level}\n\n"
    )


def _clue_rules(difficulty: int, language: str) -> str:
    clues = {1: "5-7", 2: "4-5", 3: "3-4"}[difficulty]
    if language == "zh":
        return f"""
要求：
- 线索数量：{clues} 条，按从最模糊到最明显的顺序排列
- 每条线索独立提供信息，但不直接说出答案
- 最后一条线索可以非常接近答案

输出字段：clues（字符串数组）、answer（简短明确的答案）、tags、hints（可选）、explanation（可选）
""".strip()
    return f"""
Requirements:
- Number of clues: {clues}, ordered from the vaguest to the most obvious
- Each clue adds independent information without naming the answer
- The last clue may come very close to the answer

Output fields: clues (array of strings), answer (short), tags, hints (optional), explanation (optional)
""".strip()


def _fill_blank_rules(difficulty: int, language: str) -> str:
    blanks, with_options = {1: ("1-2", True), 2: ("2-3", True), 3: ("3-4", False)}[difficulty]
    if language == "zh":
        options = "每个空提供 3-4 个选项（包含正确答案和干扰项）" if with_options else "不提供选项（纯输入模式）"
        return f"""
要求：
- 空白数量：{blanks} 个，句子中用 ____ 表示每个空白
- 句子完整流畅，是一条完整的知识陈述
- {options}
- blanks 的数量必须与句子中 ____ 的数量完全一致，position 从 0 开始依次编号

输出字段：sentence、blanks（position、correctAnswer、options）、tags、hints（可选）、explanation（可选）
""".strip()
    options = "give 3-4 options per blank (correct answer plus distractors)" if with_options else "no options (free input)"
    return f"""
Requirements:
- Number of blanks: {blanks}; mark each blank in the sentence with ____
- The sentence must be a complete, fluent statement of the fact
- Options: {options}
- The number of blanks must equal the number of ____ markers; positions count from 0

Output fields: sentence, blanks (position, correctAnswer, options), tags, hints (optional), explanation (optional)
""".strip()


def _guess_image_rules(difficulty: int, language: str) -> str:
    hints = {1: "2-3", 2: "1-2", 3: "0-1"}[difficulty]
    if language == "zh":
        return f"""
要求：
- imagePrompt：用于 AI 图片生成的英文 prompt，至少 50 个单词，描述风格、光线、构图、细节、色彩和材质；不要直接写出答案，但要有足够的视觉线索
- imageDescription：图片的简短中文描述，在没有图片时作为文字线索
- guessType：person / place / object / movie / other
- 提示数量：{hints} 条

输出字段：imagePrompt、imageDescription、guessType、answer、tags、hints（可选）、explanation（可选）
""".strip()
    return f"""
Requirements:
- imagePrompt: a detailed English prompt for an image model, at least 50 words, covering style, lighting, composition, details, colour and materials; never name the answer but leave clear visual clues
- imageDescription: a short description of the picture, used as a text clue when no image is available
- guessType: person / place / object / movie / other
- Number of hints: {hints}

Output fields: imagePrompt, imageDescription, guessType, answer, tags, hints (optional), explanation (optional)
""".strip()


def _event_order_rules(difficulty: int, language: str) -> str:
    events, dated = {1: ("3-4", True), 2: ("4-6", True), 3: ("5-8", False)}[difficulty]
    if language == "zh":
        dates = "为每个事件提供年份或大致时间（date）" if dated else "不提供时间信息"
        return f"""
要求：
- 事件数量：{events} 个，彼此有清晰的先后关系
- 事件 id 使用 event_1、event_2 …，且不能重复
- {dates}
- 描述简洁，不要包含明显的顺序词
- correctOrder 必须恰好包含全部事件 id 各一次

输出字段：events（id、description、date）、correctOrder、tags、hints（可选）、explanation（可选）
""".strip()
    dates = "give each event a year or approximate date (date)" if dated else "omit dates"
    return f"""
Requirements:
- Number of events: {events}, with clear chronological relationships
- Event ids are event_1, event_2, ... and must be unique
- Dates: {dates}
- Keep descriptions concise and free of ordering words
- correctOrder must contain every event id exactly once

Output fields: events (id, description, date), correctOrder, tags, hints (optional), explanation (optional)
""".strip()


def _matching_rules(difficulty: int, language: str) -> str:
    pairs = {1: "3-4", 2: "4-5", 3: "5-6"}[difficulty]
    if language == "zh":
        return f"""
要求：
- 配对数量：{pairs} 对，左右两侧项数相同
- 常见配对：人物 ↔ 成就、概念 ↔ 定义、地点 ↔ 特征、发明 ↔ 发明家、事件 ↔ 时间
- id 格式：left-1、left-2 … 和 right-1、right-2 …，每个 id 唯一
- 右侧项顺序打乱；correctPairs 只能引用已存在的 id，每个 id 只出现一次

输出字段：leftItems、rightItems（id、content）、correctPairs（leftId、rightId）、tags、hints（可选）、explanation（可选）
""".strip()
    return f"""
Requirements:
- Number of pairs: {pairs}; both sides have the same number of items
- Typical pairings: person <-> achievement, concept <-> definition, place <-> feature, invention <-> inventor, event <-> date
- Ids: left-1, left-2, ... and right-1, right-2, ...; every id unique
- Shuffle the right side; correctPairs may only reference existing ids, each id at most once

Output fields: leftItems, rightItems (id, content), correctPairs (leftId, rightId), tags, hints (optional), explanation (optional)
""".strip()


_RULES = {
    "clue": _clue_rules,
    "fill-blank": _fill_blank_rules,
    "guess-image": _guess_image_rules,
    "event-order": _event_order_rules,
    "matching": _matching_rules,
}


def question_prompt(point: KnowledgePoint, question_type: str, difficulty: int, language: str = "zh") -> str:
    if question_type not in _RULES:
        raise ValueError(f"Unknown question type: {question_type}")
    closing = "只返回 JSON，不要包含其他内容。" if language == "zh" else "Return ONLY the JSON, no commentary."
    return _point_header(point, question_type, difficulty, language) + _RULES[question_type](difficulty, language) + "\n\n" + closing


def match_type_prompt(knowledge_point: str, language: str = "zh") -> str:
    if language == "zh":
        return f"""
你是一个游戏化学习专家。请分析知识点"{knowledge_point}"，推荐最合适的题型。

可用题型：
- clue：人物、地点、概念、发明等需要逐步揭示特征的知识点
- fill-blank：公式、定义、时间、名称等需要精确填写的知识点
- guess-image：视觉特征明显的具体事物或场景
- event-order：有明确时间顺序的历史事件、流程步骤
- matching：存在一一对应关系的多个事物
- none：过于抽象，不适合任何题型
- multiple：适合多种题型

输出字段：recommendedType、confidence（0-1）、alternativeTypes、reason（50字以内）。只返回 JSON。
""".strip()
    return f"""
You are a gamification learning expert. Analyse the knowledge point "{knowledge_point}" and recommend the best question type.

Available types:
- clue: people, places, concepts or inventions revealed feature by feature
- fill-blank: formulas, definitions, dates or names that must be recalled exactly
- guess-image: concrete things or scenes with strong visual features
- event-order: historical events or process steps with a clear order
- matching: several items with one-to-one relationships
- none: too abstract for any quiz type
- multiple: suits several types

Output fields: recommendedType, confidence (0-1), alternativeTypes, reason (under 30 words). Return ONLY the JSON.
""".strip()

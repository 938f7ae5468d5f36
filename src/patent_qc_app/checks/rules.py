"""Formal-check categories, their rules and the shared response schema."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from patent_qc_app.extraction.sections import SectionName


class Rule(BaseModel):
    text: str
    model_checked: bool = True


class CheckCategory(BaseModel):
    section: SectionName
    rules: list[Rule]
    cross_reference: SectionName | None = None
    cross_reference_hint: str = ""
    char_limited: bool = False

    @property
    def name(self) -> str:
        return self.section.value

    def actionable_rules(self) -> list[Rule]:
        return [rule for rule in self.rules if rule.model_checked]


FORMAL_CHECK_CATEGORIES: list[CheckCategory] = [
    CheckCategory(
        section=SectionName.ABSTRACT,
        rules=[
            Rule(text="**技术领域一致性**：检查摘要中记载的“涉及...技术领域”与说明书中“技术领域”章节记载的内容是否一致。"),
            Rule(text="**发明名称一致性**：检查摘要中记载的“具体涉及...”后面的发明名称与说明书中的发明名称是否一致。"),
            Rule(text="字数（含标点）不得超过上限。", model_checked=False),
        ],
        cross_reference=SectionName.TECHNICAL_FIELD,
        cross_reference_hint="请基于上述参考文本，检查摘要中的“技术领域”和“发明名称”是否与之一致",
        char_limited=True,
    ),
    CheckCategory(
        section=SectionName.CLAIMS,
        rules=[
            Rule(text="**引用基础**：检查是否存在缺乏引用基础的**从属权利要求**。"),
            Rule(text="**总项数**：检查独立权利要求和从属权利要求的**总项数是否超过10项**。"),
            Rule(text="**独立权利要求项数**：检查**独立权利要求的总项数是否超过3项**。"),
            Rule(
                text="**划界**：产品类独立权利要求是否正确划界，将与现有技术相同的特征写入前序部分。",
                model_checked=False,
            ),
            Rule(
                text="**清晰度**：检查权利要求是否清楚，是否存在**否定性限定**，"
                "或使用“**约**”、“**接近**”、“**等**”、“**或类似物**”、“**可以**”、“**可**”等模糊用语。"
            ),
            Rule(text="**复杂公式**：检查**独立权利要求**中是否包含复杂公式（允许使用初等函数等简单形式）。"),
            Rule(text="**“其特征在于”**：检查**独立权利要求**中是否都包含“其特征在于”。"),
            Rule(text="**参数一致性**：检查解释的参数与公式中的参数是否保持一致。"),
            Rule(text="**编号格式**：检查权利要求编号格式是否正确，编号后应为“**.**”，而非顿号、逗号或冒号。"),
        ],
    ),
    CheckCategory(
        section=SectionName.TECHNICAL_FIELD,
        rules=[Rule(text="**一致性**：检查本章节记载的技术领域是否与“摘要”中记载的技术领域保持一致。")],
        cross_reference=SectionName.ABSTRACT,
        cross_reference_hint="请基于上述参考文本，检查本段落的技术领域描述是否与摘要一致",
    ),
    CheckCategory(
        section=SectionName.BACKGROUND,
        rules=[
            Rule(
                text="以A结尾的引用文件应表述为“公开号/申请公布号为……的中国专利申请文件”；以B结尾的应表述为"
                "“公告号/授权公告号为……的中国专利文件”；以U结尾的应表述为“公告号/公开号为……的中国专利文件”。"
            ),
            Rule(text="相关叙述不得出现“对比文件”、“发明”、“实用新型”字眼。"),
            Rule(text="对于引用文件的赘述需要保持一致，例如上文引用以A结尾的文件，下文应称为该申请文件。"),
            Rule(text="不能出现“广泛”。"),
        ],
    ),
    CheckCategory(
        section=SectionName.SUMMARY,
        rules=[Rule(text="章节末尾是否对发明的有益效果进行了总结说明。")],
    ),
    CheckCategory(
        section=SectionName.FIGURE_DESCRIPTION,
        rules=[
            Rule(text="“...的第一结构示意图”等表述是否过于笼统，需要具体说明是哪个视角或哪些部件的示意图。"),
            Rule(text="附图标记是否只使用“数字”进行标号，而不是“字母+数字”的形式（例如滑块123a、手柄12b）。"),
            Rule(text="是否出现套话。"),
        ],
    ),
    CheckCategory(
        section=SectionName.EMBODIMENTS,
        rules=[
            Rule(text="是否缺少对附图的引用和说明。"),
            Rule(text="公式后是否添加了标点。"),
            Rule(text="实施例中是否存在大段（例如超过50字）复制发明内容部分的技术效果分析内容。"),
            Rule(text="背景技术的分析内容是否被写入实施例中。"),
            Rule(text="套话总字数是否超过200字。"),
        ],
    ),
    CheckCategory(
        section=SectionName.DRAWINGS,
        rules=[Rule(text="附图本身的内容需人工核对，模型不检查图像。", model_checked=False)],
    ),
]

COMMON_STYLE_RULES = """- 检查是否叠字，如果有叠字，判断语句是否通顺（例如：的的）
- 检查是否同时出现两个标点（例如：。。或者，，或者，。）
- 检查是否存在错字、错词
- 每句句子的句末需要有标点
- **忽略换行处的空格问题**：文本已转换为Markdown格式，请忽略Markdown语法中的标准换行和段落间距。"""

# Issues mentioning any of these are cross-cutting and reported under the overall category.
OVERALL_KEYWORDS = ("叠字", "两个标点", "句末", "的的", "。。", "，。", "空格")

ISSUE_SCHEMA: dict[str, Any] = {
    "type": "array",
    "description": "该类别下发现的问题列表。如果没有问题，则为空数组。",
    "items": {
        "type": "object",
        "properties": {
            "description": {"type": "string", "description": "发现的具体问题的描述。"},
            "suggestion": {"type": "string", "description": "针对该问题的修改建议。"},
        },
        "required": ["description", "suggestion"],
    },
}


def categories_for(names: list[str] | None = None) -> list[CheckCategory]:
    """Resolve category names to definitions, keeping the requested order."""
    if not names:
        return list(FORMAL_CHECK_CATEGORIES)
    by_name = {category.name: category for category in FORMAL_CHECK_CATEGORIES}
    unknown = [name for name in names if name not in by_name]
    if unknown:
        raise ValueError(f"Unknown check categories: {', '.join(unknown)}")
    return [by_name[name] for name in dict.fromkeys(names)]

"""Rule checking of one section through the inference orchestrator."""

from __future__ import annotations

import json
import re

from pydantic import TypeAdapter, ValidationError

from patent_qc_app.checks.models import CategoryCheckOutcome, CategoryResult, Issue
from patent_qc_app.checks.rules import COMMON_STYLE_RULES, ISSUE_SCHEMA, CheckCategory
from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.extraction.text_metrics import count_characters
from patent_qc_app.llm.errors import MalformedResponseError
from patent_qc_app.llm.models import InferenceRequest, TextPart
from patent_qc_app.llm.orchestrator import InferenceOrchestrator

LOGGER = get_logger(__name__)

ISSUE_LIST = TypeAdapter(list[Issue])
CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")

CHECK_PROMPT = """# 角色与指令
你是一位经验丰富的中国专利代理人，同时也是中文校对专家。请对提供的专利文件章节进行形式质检和错别字校对。
所有判断必须严格基于“待检章节文本”（Markdown格式）以及可能提供的“参考对比文本”。

# 当前任务：“{category}” 类别质检
## 【类别规则】
严格按照以下规则质检（不要过度联想）：
{rules}

## 【通用规则】
{common_rules}

## 【额外任务：错别字校对】
通读“待检章节文本”，找出所有用词错误、打字错误或不规范的汉字，每一处作为一个问题对象输出：
在 description 中指出原文中的错别字及其上下文，在 suggestion 中给出修正后的词语或句子片段。

# 输出要求
输出必须是符合给定模式的JSON对象数组，每个对象包含 description 和 suggestion。
如果未发现任何问题，返回空数组 []。不要输出任何解释或多余文本。
"""


class CategoryChecker:
    """Check one section against one category's rules."""

    def __init__(self, orchestrator: InferenceOrchestrator, *, settings: AppSettings | None = None) -> None:
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator

    async def check(
        self,
        category: CheckCategory,
        section_text: str,
        cross_reference_text: str | None = None,
    ) -> CategoryCheckOutcome:
        result = CategoryResult(category=category.name)
        local_issues = self.local_findings(category, section_text, result)

        rules = category.actionable_rules()
        if not section_text.strip() or not rules:
            result.issues = local_issues
            return CategoryCheckOutcome(result=result, cost=0.0)

        request = self.build_request(category, section_text, cross_reference_text)
        outcome = await self.orchestrator.submit(request)
        try:
            model_issues = parse_issues(outcome.text, category=category.name)
        except MalformedResponseError as exc:
            raise MalformedResponseError(str(exc), cost=outcome.cost) from exc

        LOGGER.info(
            "Category checked",
            extra={
                "category": category.name,
                "local_issues": len(local_issues),
                "model_issues": len(model_issues),
                "cost": outcome.cost,
            },
        )
        result.issues = [*local_issues, *model_issues]
        return CategoryCheckOutcome(result=result, cost=outcome.cost)

    def local_findings(self, category: CheckCategory, section_text: str, result: CategoryResult) -> list[Issue]:
        """Deterministic findings computed without the model."""
        if not category.char_limited:
            return []

        limit = self.settings.abstract_char_limit
        char_count = count_characters(section_text)
        result.char_count = char_count
        if char_count <= limit:
            return []
        return [
            Issue(
                description=f"{category.name}字数（含标点）为 {char_count} 字，超过了{limit}字的限制。",
                suggestion=f"请将{category.name}内容缩减至{limit}字以内。",
            )
        ]

    @staticmethod
    def build_request(
        category: CheckCategory,
        section_text: str,
        cross_reference_text: str | None = None,
    ) -> InferenceRequest:
        rules = "\n".join(f"{idx}. {rule.text}" for idx, rule in enumerate(category.actionable_rules(), start=1))
        prompt = CHECK_PROMPT.format(category=category.name, rules=rules, common_rules=COMMON_STYLE_RULES)

        body = f"# 待检章节文本 (Markdown)\n\n{section_text}"
        if cross_reference_text and category.cross_reference is not None:
            body += (
                f"\n\n## 参考对比文本：说明书-{category.cross_reference.value}\n{cross_reference_text}"
                f"\n\n({category.cross_reference_hint})"
            )

        return InferenceRequest.from_parts(
            [TextPart(text=prompt), TextPart(text=body)],
            response_schema=ISSUE_SCHEMA,
            label=f"check:{category.name}",
        )


def parse_issues(text: str, *, category: str = "") -> list[Issue]:
    """Decode the model's JSON answer into issues, rejecting any other shape."""
    cleaned = CODE_FENCE_PATTERN.sub("", text.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"模型为“{category}”类别返回了无效的数据格式。") from exc

    if isinstance(payload, dict):
        payload = payload.get("result", payload.get("issues"))

    try:
        return ISSUE_LIST.validate_python(payload)
    except ValidationError as exc:
        raise MalformedResponseError(f"模型为“{category}”类别返回了无效的数据格式。") from exc

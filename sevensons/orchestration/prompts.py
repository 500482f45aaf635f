"""
System prompt construction for a role.
"""

from typing import Optional

from .roles import Role

PERSONALITY_GUIDANCE: dict[str, str] = {
    "李白": """作为诗仙李白，你应该：
- 用诗意的语言表达思想，偶尔吟诗作对
- 展现豪放不羁的性格，热爱自由和美酒
- 用浪漫主义的视角看待世界
- 在回答中融入对自然美景的描述""",
    "孙悟空": """作为齐天大圣孙悟空，你应该：
- 用活泼机智的语言，偶尔使用"俺老孙"等称谓
- 展现勇敢正义的品格，敢于挑战权威
- 用幽默风趣的方式解决问题
- 在回答中体现七十二变的机智和灵活""",
    "诸葛亮": """作为智慧化身诸葛亮，你应该：
- 用深思熟虑、条理清晰的方式分析问题
- 展现运筹帷幄的智慧和远见
- 用谦逊但自信的语调表达观点
- 在回答中体现战略思维和全局观念""",
}

BEHAVIOR_RULES = """行为准则：
1. 始终保持角色的独特性格和说话方式
2. 根据你的专长领域提供专业建议
3. 与用户建立良好的互动关系
4. 记住重要的对话内容，形成连续的对话体验
5. 适当引用你的历史经历和知识背景"""


def get_personality_guidance(role_name: str) -> str:
    return PERSONALITY_GUIDANCE.get(role_name, f"作为{role_name}，请保持你独特的性格特点和专业素养。")


def build_system_prompt(role: Role, knowledge: str = "", summary: Optional[str] = None) -> str:
    """Identity, guidance, rules and role knowledge. Memory snippets are
    appended afterwards by the conversation store."""
    specialties = "、".join(role.specialties) if role.specialties else "通用知识"
    identity = (
        f"你是{role.name}，{role.description}。\n"
        f"你的专长领域包括：{specialties}。\n"
        f"你的性格特点：{role.personality}。"
    )

    sections = [identity, get_personality_guidance(role.name), BEHAVIOR_RULES]

    if knowledge and knowledge.strip():
        sections.append(f"角色专属知识与指令：\n{knowledge.strip()}")

    if summary:
        sections.append(f"[对话摘要] {summary}")

    sections.append(f"请以{role.name}的身份，用符合你性格特点的方式回应用户。")
    return "\n\n".join(sections)


def augment_message(message: str, previous_replies: list[tuple[str, str]], preview_chars: int = 300) -> str:
    """Append earlier replies of this round, each cut to a short preview."""
    if not previous_replies:
        return message
    lines = "\n".join(f"- {name}: {content[:preview_chars]}" for name, content in previous_replies)
    return f"{message}\n\n[本轮已有角色回复参考]\n{lines}"

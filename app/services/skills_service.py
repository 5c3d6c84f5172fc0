import html


class SkillsList:
    """Ordered, duplicate-free list of skills entered in the registration form."""

    def __init__(self):
        self._skills: list[str] = []

    @property
    def items(self) -> list[str]:
        return list(self._skills)

    def add(self, skill: str) -> bool:
        value = (skill or "").strip()
        if not value or value in self._skills:
            return False
        self._skills.append(value)
        return True

    def remove(self, skill: str) -> bool:
        if skill not in self._skills:
            return False
        self._skills = [s for s in self._skills if s != skill]
        return True

    def clear(self) -> None:
        self._skills = []

    def render(self) -> str:
        # one tag per skill, in insertion order
        return "".join(
            f'<div class="skill-tag"><span>{html.escape(skill)}</span>'
            f'<button type="button" data-skill="{html.escape(skill, quote=True)}">&times;</button></div>'
            for skill in self._skills
        )

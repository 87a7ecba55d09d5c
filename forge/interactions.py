"""
Interactivity heuristics and prototype reaction mapping.

Names that look like buttons get an invisible click target; prototype
reactions are carried into the output as StringValue descriptors that game
code can read (rbxmx cannot embed scripts).
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from forge.audit import ApproximationLog
from forge.models import BaseNode, Reaction, Transition


class InteractivityMatcher:
    """Compiled, ordered set of name patterns marking a node as interactive."""

    def __init__(self, patterns: Sequence[str]):
        self.patterns = list(patterns)
        self._compiled = [re.compile(p, re.IGNORECASE) for p in self.patterns]

    def matches(self, name: str) -> bool:
        return any(p.search(name) for p in self._compiled)

    def is_interactive(self, node: BaseNode) -> bool:
        return self.matches(node.name)


# Figma easing -> (Enum.EasingStyle, Enum.EasingDirection)
EASING_MAP = {
    'LINEAR': ('Linear', 'InOut'),
    'EASE_IN': ('Quad', 'In'),
    'EASE_OUT': ('Quad', 'Out'),
    'EASE_IN_AND_OUT': ('Quad', 'InOut'),
    'EASE_IN_BACK': ('Back', 'In'),
    'EASE_OUT_BACK': ('Back', 'Out'),
    'EASE_IN_AND_OUT_BACK': ('Back', 'InOut'),
    'CUSTOM_BEZIER': ('Quad', 'InOut'),
}

TRIGGER_MAP = {
    'ON_CLICK': 'click',
    'ON_HOVER': 'hover_enter',
    'MOUSE_ENTER': 'hover_enter',
    'MOUSE_LEAVE': 'hover_leave',
    'ON_PRESS': 'press',
    'MOUSE_DOWN': 'press',
    'MOUSE_UP': 'click',
    'AFTER_TIMEOUT': 'timeout',
    'ON_DRAG': 'click',
}

SUPPORTED_TRANSITIONS = {'DISSOLVE', 'SMART_ANIMATE', 'MOVE_IN', 'MOVE_OUT', 'SLIDE_IN', 'SLIDE_OUT'}


@dataclass
class ReactionBinding:
    trigger: str
    event: str
    action: str
    destination: str
    transition: str
    easing_style: str
    easing_direction: str
    duration: float
    delay: float = 0.0

    @property
    def value_name(self) -> str:
        return f"Reaction_{self.trigger}"

    def encode(self) -> str:
        parts = [
            f"event={self.event}",
            f"action={self.action}",
            f"destination={self.destination}",
            f"transition={self.transition}",
            f"easing={self.easing_style}.{self.easing_direction}",
            f"duration={self.duration:.2f}",
        ]
        if self.delay:
            parts.append(f"delay={self.delay:.2f}")
        return ";".join(parts)


def map_easing(transition: Optional[Transition], node: BaseNode, audit: ApproximationLog) -> tuple:
    if transition is None:
        return EASING_MAP['LINEAR']
    easing_type = transition.easing.type
    if easing_type == 'CUSTOM_BEZIER':
        audit.record('easing', node.id, f"Custom bezier easing on '{node.name}' approximated as Quad/InOut")
    elif easing_type not in EASING_MAP:
        audit.record('easing', node.id, f"Unknown easing {easing_type} on '{node.name}' approximated as Linear")
        return EASING_MAP['LINEAR']
    return EASING_MAP[easing_type]


def map_reaction(reaction: Reaction, node: BaseNode, audit: ApproximationLog) -> ReactionBinding:
    trigger = reaction.trigger.type
    event = TRIGGER_MAP.get(trigger)
    if event is None or trigger == 'ON_DRAG':
        audit.record('trigger', f"{node.id}:{trigger}", f"Trigger {trigger} on '{node.name}' approximated as click")
        event = 'click'

    transition = reaction.action.transition
    transition_type = transition.type if transition else 'INSTANT'
    if transition and transition_type not in SUPPORTED_TRANSITIONS:
        audit.record(
            'transition', f"{node.id}:{transition_type}",
            f"Transition {transition_type} on '{node.name}' approximated as DISSOLVE",
        )
        transition_type = 'DISSOLVE'

    style, direction = map_easing(transition, node, audit)
    return ReactionBinding(
        trigger=trigger,
        event=event,
        action=reaction.action.type,
        destination=reaction.action.destination_id or '',
        transition=transition_type,
        easing_style=style,
        easing_direction=direction,
        duration=transition.duration if transition else 0.0,
        delay=reaction.trigger.delay or 0.0,
    )


def map_reactions(node: BaseNode, audit: ApproximationLog) -> List[ReactionBinding]:
    return [map_reaction(r, node, audit) for r in node.reactions]

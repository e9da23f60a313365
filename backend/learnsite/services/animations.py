from __future__ import annotations
import html
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ANIMATION_PLACEHOLDER = re.compile(r"\[animation:\s*([^:\]]+?)\s*:\s*([^\]]+?)\s*\]")

PHET_SOURCE = "PhET Interactive Simulations"

# Keyword -> PhET simulation id. Lookup order matters: the first key that
# contains any search word wins.
PHET_SIMULATIONS: Dict[str, str] = {
	# Physics
	"static electricity": "balloons-and-static-electricity",
	"electricity": "circuit-construction-kit-dc",
	"circuit": "circuit-construction-kit-dc",
	"force": "forces-and-motion-basics",
	"motion": "forces-and-motion-basics",
	"gravity": "gravity-and-orbits",
	"orbit": "gravity-and-orbits",
	"pendulum": "pendulum-lab",
	"oscillation": "pendulum-lab",
	# Chemistry
	"chemical equation": "balancing-chemical-equations",
	"molecule": "build-a-molecule",
	"matter": "states-of-matter",
	"acid": "acid-base-solutions",
	"base": "acid-base-solutions",
	"concentration": "concentration",
	# Biology
	"evolution": "natural-selection",
	"selection": "natural-selection",
	"gene": "gene-expression-essentials",
	"expression": "gene-expression-essentials",
	# Earth science
	"solar system": "my-solar-system",
	"planet": "my-solar-system",
	"tectonics": "plate-tectonics",
	"plate": "plate-tectonics",
	# Mathematics
	"rate": "unit-rates",
	"area": "area-builder",
	"fraction": "fraction-matcher",
	"graph": "graphing-lines",
	"line": "graphing-lines",
	"proportion": "proportion-playground",
}


@dataclass
class Animation:
	simulation_id: str
	embed_url: str
	caption: str
	source: str = PHET_SOURCE


def embed_url_for(simulation_id: str) -> str:
	return f"https://phet.colorado.edu/sims/html/{simulation_id}/latest/{simulation_id}_en.html"


def _animation_html(animation: Animation) -> str:
	caption = html.escape(animation.caption)
	return (
		'<div class="content-animation my-8 p-6 rounded-xl shadow-lg">'
		'<div class="flex items-center justify-between mb-4">'
		'<h4 class="text-lg font-semibold">'
		'<img src="https://cdn.jsdelivr.net/gh/icons8/flat-color-icons@master/svg/movie.svg" class="flat-color-icon" alt="Animation icon" />'
		f"{caption}</h4></div>"
		'<div class="animation-container">'
		f'<iframe src="{animation.embed_url}" class="w-full h-[400px] border-0 rounded-lg" allowfullscreen loading="lazy"></iframe>'
		"</div>"
		f'<p class="mt-4 text-sm">Source: {html.escape(animation.source)}</p>'
		"</div>"
	)


class AnimationResolver:
	"""Replaces [animation:<term>:<prompt>] placeholders with embedded simulations."""

	def __init__(self, simulations: Optional[Dict[str, str]] = None) -> None:
		self.simulations = dict(PHET_SIMULATIONS if simulations is None else simulations)

	def find_simulation(self, search_term: str, caption: str) -> Optional[Animation]:
		words = search_term.lower().split()
		for key, simulation_id in self.simulations.items():
			if any(word in key for word in words):
				return Animation(simulation_id=simulation_id, embed_url=embed_url_for(simulation_id), caption=caption)
		return None

	def process_animation_placeholders(self, content: str) -> str:
		parts: List[str] = []
		cursor = 0
		for match in ANIMATION_PLACEHOLDER.finditer(content):
			search_term, detailed_prompt = match.group(1).strip(), match.group(2).strip()
			animation = self.find_simulation(search_term, detailed_prompt)
			parts.append(content[cursor : match.start()])
			if animation is None:
				logger.warning("No simulation found for animation placeholder %r", search_term)
				parts.append(match.group(0))
			else:
				parts.append(_animation_html(animation))
			cursor = match.end()
		parts.append(content[cursor:])
		return "".join(parts)

"""
Saga: suite ordonnée d’étapes, chacune avec une action compensatoire optionnelle.
Remplace une transaction unique entre Supabase et Stripe.
- Les étapes s’exécutent dans l’ordre; une étape ne démarre qu’après le succès de la précédente.
- En cas d’échec, les compensations des étapes réussies sont exécutées en ordre inverse.
- Une compensation en échec est journalisée sans interrompre les suivantes;
  l’erreur d’origine est toujours celle qui remonte.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Step:
    name: str
    action: Callable[[Dict[str, Any]], Any]
    compensate: Optional[Callable[[Dict[str, Any]], None]] = None


class Saga:
    def __init__(self, name: str):
        self.name = name
        self.steps: List[Step] = []

    def step(self, name: str, action: Callable[[Dict[str, Any]], Any], compensate: Optional[Callable[[Dict[str, Any]], None]] = None) -> "Saga":
        """Ajoute une étape; action et compensate reçoivent les résultats {nom_etape: résultat} déjà obtenus."""
        self.steps.append(Step(name=name, action=action, compensate=compensate))
        return self

    def run(self) -> Dict[str, Any]:
        """Exécute toutes les étapes et retourne {nom_etape: résultat}."""
        results: Dict[str, Any] = {}
        completed: List[Step] = []
        for step in self.steps:
            try:
                results[step.name] = step.action(results)
            except Exception:
                logger.error("saga.%s step failed step=%s completed=%s", self.name, step.name, [s.name for s in completed])
                self._unwind(completed, results)
                raise
            completed.append(step)
        return results

    def _unwind(self, completed: List[Step], results: Dict[str, Any]) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(results)
                logger.info("saga.%s compensated step=%s", self.name, step.name)
            except Exception:
                # Ligne potentiellement orpheline: à réconcilier manuellement
                logger.exception("saga.%s compensation failed step=%s", self.name, step.name)

"""
Character-level local search on a single string statement.

A few random edits first check whether the string influences the objective at
all. If it does, characters are removed (end to start), replaced (position by
position) and finally added at the end and at the front.
"""
import logging

from guidance.candidate import Candidate, StringStatement
from guidance.local_search import LocalSearch
from guidance.objective import LocalSearchObjective

logger = logging.getLogger(__name__)

_MAX_CODE_POINT = 0x10FFFF


class AbstractStringLocalSearch(LocalSearch):

    def do_search(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        p = candidate.statement(index)
        if not isinstance(p, StringStatement):
            raise TypeError(f"statement {index} is not a string: {p!r}")

        if not self.probe(candidate, index, objective):
            logger.info("Not applying local search to string as it does not affect fitness")
            return False

        logger.info("Applying local search to string %s", p.code())
        has_improved = False
        logger.info("Removing characters")
        if self.remove_characters(candidate, index, objective):
            has_improved = True
        logger.info("Replacing characters")
        if self.replace_characters(candidate, index, objective):
            has_improved = True
        logger.info("Adding characters")
        if self.add_characters(candidate, index, objective):
            has_improved = True
        logger.info("Resulting string: %r", p.value)
        return has_improved

    def probe(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        """Random edits until one changes the objective; improvements are kept."""
        p = candidate.statement(index)
        original = p.value
        for _ in range(self.config.local_search_probes):
            if self.is_finished():
                break
            snapshot = candidate.backup(index)
            if self.rng.random() > 0.5:
                p.increment(self.rng)
            else:
                p.randomize(self.rng, self.config.string_length)
            candidate.changed = True
            logger.debug("Probing string %r -> %r", original, p.value)

            result = objective.has_changed(candidate)
            if result >= 0:
                candidate.restore(snapshot)
            if result != 0:
                logger.info("String affects fitness")
                return True
        return False

    def remove_characters(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        p = candidate.statement(index)
        improvement = False

        def accept(c):
            nonlocal improvement
            if objective.has_improved(c):
                improvement = True
                return True
            return objective.has_not_worsened(c)

        for i in range(len(p.value) - 1, -1, -1):
            if self.is_finished():
                break
            s = p.value
            logger.debug(" %d %r -> %r", i, s, s[:i] + s[i + 1:])
            candidate.trial(index, s[:i] + s[i + 1:], accept)
        return improvement

    def _try_char(self, candidate: Candidate, index: int, objective: LocalSearchObjective,
                  position: int, code: int) -> bool:
        if not 0 <= code <= _MAX_CODE_POINT:
            return False
        s = candidate.statement(index).value
        return candidate.trial(index, s[:position] + chr(code) + s[position + 1:], objective.has_improved)

    def replace_characters(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        raise NotImplementedError

    def _add_while_improving(self, candidate: Candidate, index: int,
                             objective: LocalSearchObjective, at_front: bool) -> bool:
        p = candidate.statement(index)
        improvement = False
        add = True
        while add:
            add = False
            base = p.value
            for code in range(self.config.char_lo, self.config.char_hi):
                if self.is_finished():
                    return improvement
                new = chr(code) + base if at_front else base + chr(code)
                if candidate.trial(index, new, objective.has_improved):
                    improvement = True
                    add = True
                    break
        return improvement

    def add_characters(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        improvement = self._add_while_improving(candidate, index, objective, at_front=False)
        if self.is_finished():
            return improvement
        if self._add_while_improving(candidate, index, objective, at_front=True):
            improvement = True
        return improvement


class StringLocalSearch(AbstractStringLocalSearch):
    """Tries every character of the range at each position, first improvement wins."""

    def replace_characters(self, candidate, index, objective) -> bool:
        p = candidate.statement(index)
        improvement = False
        for i in range(len(p.value)):
            if self.is_finished():
                return improvement
            old_char = p.value[i]
            for code in range(self.config.char_lo, self.config.char_hi):
                if self.is_finished():
                    return improvement
                if chr(code) == old_char:
                    continue
                if self._try_char(candidate, index, objective, i, code):
                    improvement = True
                    break
        return improvement


class StringAVMLocalSearch(AbstractStringLocalSearch):
    """Moves each character code by +1/-1 and then by doubling steps while that improves."""

    def replace_characters(self, candidate, index, objective) -> bool:
        p = candidate.statement(index)
        improvement = False
        for i in range(len(p.value)):
            if self.is_finished():
                return improvement
            done = False
            while not done:
                if self.is_finished():
                    return improvement
                done = True
                code = ord(p.value[i])
                if self._try_char(candidate, index, objective, i, code + 1):
                    done = False
                    improvement = True
                    self.iterate(candidate, index, objective, i, 2)
                    continue
                if self.is_finished():
                    return improvement
                if self._try_char(candidate, index, objective, i, code - 1):
                    done = False
                    improvement = True
                    self.iterate(candidate, index, objective, i, -2)
        return improvement

    def iterate(self, candidate: Candidate, index: int, objective: LocalSearchObjective,
                position: int, delta: int) -> bool:
        improvement = False
        code = ord(candidate.statement(index).value[position])
        while not self.is_finished():
            code += delta
            if not self._try_char(candidate, index, objective, position, code):
                break
            improvement = True
            delta *= 2
        return improvement

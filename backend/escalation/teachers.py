import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TeacherDirectory:
    """Student -> teacher assignments, optionally scoped to a course."""

    def __init__(self):
        self._assignments: Dict[Tuple[str, Optional[str]], List[str]] = {}

    def assign(self, student_id: str, teacher_id: str, course_id: Optional[str] = None) -> None:
        teachers = self._assignments.setdefault((student_id, course_id), [])
        if teacher_id not in teachers:
            teachers.append(teacher_id)
            logger.info("assigned teacher %s to student %s (course=%s)", teacher_id, student_id, course_id)

    def remove(self, student_id: str, teacher_id: str, course_id: Optional[str] = None) -> None:
        teachers = self._assignments.get((student_id, course_id), [])
        if teacher_id in teachers:
            teachers.remove(teacher_id)
            logger.info("removed teacher %s from student %s (course=%s)", teacher_id, student_id, course_id)

    def lookup(self, student_id: str, course_id: Optional[str] = None) -> Optional[str]:
        """Course-specific teacher first, then the student's course-independent teacher."""
        if course_id is not None:
            teachers = self._assignments.get((student_id, course_id))
            if teachers:
                return teachers[0]
        teachers = self._assignments.get((student_id, None))
        return teachers[0] if teachers else None

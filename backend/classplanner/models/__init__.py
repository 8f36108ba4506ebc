from classplanner.models.academic_session import AcademicSession  # noqa: F401
from classplanner.models.activity_log import ActivityLog  # noqa: F401
from classplanner.models.batch import Batch, Shift  # noqa: F401
from classplanner.models.classroom import Classroom, RoomType  # noqa: F401
from classplanner.models.course import Course, CourseType, SessionCourse  # noqa: F401
from classplanner.models.course_schedule import CourseSchedule, ScheduleStatus  # noqa: F401
from classplanner.models.department import Department  # noqa: F401
from classplanner.models.instructor_assignment import InstructorAssignment  # noqa: F401
from classplanner.models.schedule_proposal import ProposalStatus, ScheduleProposal  # noqa: F401
from classplanner.models.teacher import Teacher  # noqa: F401

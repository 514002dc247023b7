USER_ROLES = ("admin", "teacher", "student")
USER_STATUSES = ("active", "disabled")
TEACHER_STATUSES = ("active", "sabbatical", "retired", "suspended")
GENDERS = ("male", "female", "other")
ENROLLMENT_STATUSES = ("enrolled", "on_leave", "graduated", "withdrawn")
DEGREE_LEVELS = ("associate", "bachelor", "master", "doctoral")
PROGRAM_STATUSES = ("active", "deprecated", "upcoming")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
REGISTRATION_STATUSES = ("registered", "dropped", "completed", "failed", "withdrawn")
LETTER_GRADES = ("A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D+", "D", "F")
ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")

USER_CODE_PREFIXES = {"admin": "A", "teacher": "T", "student": "S"}

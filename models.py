"""
models.py - Database Models for UniTrack
Student academic records: profiles, per-user grading scales, semesters and modules.
Every row is owned by exactly one user; GPA is computed by gpa.compute_gpa.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import abort, current_app
from flask_login import UserMixin
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db, bcrypt
from errors import StoreUnavailable, ValidationFailed, Unauthorized
from gpa import GradedModule, compute_gpa, total_credit_hours, rank_by_gpa, paginate


MODULE_TYPES = ('compulsory', 'elective', 'optional')
ATTEMPT_TYPES = ('first_attempt', 'repeat', 'dropped')

MODULE_TYPE_LABELS = {
    'compulsory': 'Compulsory',
    'elective': 'Elective',
    'optional': 'Optional'
}
ATTEMPT_TYPE_LABELS = {
    'first_attempt': 'First Attempt',
    'repeat': 'Repeat',
    'dropped': 'Dropped'
}


# ============================================================================
# STORE HELPERS
# ============================================================================

def commit_changes():
    """
    Commit the current session, translating database failures

    Raises:
        ValidationFailed: A constraint rejected the data (duplicates etc.)
        StoreUnavailable: Any other database failure
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning('Integrity error on commit: %s', e.orig)
        raise ValidationFailed(_integrity_message(e)) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error('Database error on commit: %s', e)
        raise StoreUnavailable() from e


def _integrity_message(error):
    """Turn a constraint violation into a message a student can act on"""
    detail = str(error.orig).lower()
    if 'registration_number' in detail:
        return 'This registration number is already registered.'
    if 'email' in detail:
        return 'An account with this email already exists.'
    if 'uq_semester_current_per_user' in detail or 'semester.user_id' in detail:
        return 'Only one semester can be marked as current.'
    if 'label' in detail:
        return 'Grade labels must be unique.'
    return 'The record conflicts with existing data.'


def get_owned_or_404(model, record_id, user):
    """
    Fetch a row by primary key and verify the user owns it

    Raises:
        404 if the row does not exist
        Unauthorized if it belongs to another user
    """
    record = db.session.get(model, record_id)
    if record is None:
        abort(404)
    if record.user_id != user.id:
        current_app.logger.warning(
            'User %s tried to access %s %s owned by user %s',
            user.id, model.__tablename__, record_id, record.user_id
        )
        raise Unauthorized()
    return record


# === FORM VALUE PARSERS ===

def _required_text(data, key, label, max_length):
    value = (data.get(key) or '').strip()
    if not value:
        raise ValidationFailed(f'{label} is required.')
    if len(value) > max_length:
        raise ValidationFailed(f'{label} must be at most {max_length} characters.')
    return value


def _optional_text(data, key, max_length):
    value = (data.get(key) or '').strip()
    return value[:max_length] or None


def parse_grade_point(value):
    """Parse a grade-point value into a 2-place Decimal within range"""
    try:
        point = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f'Grade point "{value}" is not a number.')

    if not point.is_finite():
        raise ValidationFailed(f'Grade point "{value}" is not a number.')

    maximum = Decimal(current_app.config.get('MAX_GRADE_POINT', '9.99'))
    if point < 0 or point > maximum:
        raise ValidationFailed(f'Grade points must be between 0.00 and {maximum}.')

    return _two_places(point, f'Grade point "{value}"')


def _two_places(number, label):
    """Stored values are never rounded; more than 2 decimal places is an error"""
    exact = number.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    if exact != number:
        raise ValidationFailed(f'{label} has more than 2 decimal places.')
    return exact


def parse_percentage(value):
    """Parse an optional percentage (0-100); blank means not set"""
    if value is None or str(value).strip() == '':
        return None
    try:
        percentage = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f'Percentage "{value}" is not a number.')
    if not percentage.is_finite() or percentage < 0 or percentage > 100:
        raise ValidationFailed('Percentages must be between 0 and 100.')
    return _two_places(percentage, f'Percentage "{value}"')


def parse_credit_hours(value):
    """Credit hours must be a positive whole number no larger than MAX_CREDIT_HOURS"""
    try:
        credit_hours = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed('Credit hours must be a whole number.')
    if credit_hours <= 0:
        raise ValidationFailed('Credit hours must be greater than 0.')
    maximum = current_app.config.get('MAX_CREDIT_HOURS', 60)
    if credit_hours > maximum:
        raise ValidationFailed(f'Credit hours cannot exceed {maximum}.')
    return credit_hours


def parse_year(value, label):
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed(f'{label} must be a year.')
    if not 1900 <= year <= 2200:
        raise ValidationFailed(f'{label} must be a valid year.')
    return year


def parse_date(value, label):
    """Parse an optional YYYY-MM-DD date"""
    if value is None or str(value).strip() == '':
        return None
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationFailed(f'{label} must be a date (YYYY-MM-DD).')


def _choice(data, key, choices, default):
    value = (data.get(key) or default).strip()
    if value not in choices:
        raise ValidationFailed(f'Invalid value "{value}" for {key.replace("_", " ")}.')
    return value


# ============================================================================
# MODELS
# ============================================================================

class User(UserMixin, db.Model):
    """
    Login identity - owns every other record
    """
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    profile = db.relationship('Profile', backref='user', uselist=False, cascade='all, delete-orphan')
    grading_scale = db.relationship('GradingScaleEntry', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    semesters = db.relationship('Semester', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    modules = db.relationship('Module', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    def set_password(self, raw_password):
        self.password = bcrypt.generate_password_hash(raw_password).decode('utf-8')

    def check_password(self, raw_password):
        return bcrypt.check_password_hash(self.password, raw_password)

    # === STORE CONTRACT ===

    def get_grading_scale(self):
        """Grading scale entries, highest grade point first"""
        return self.grading_scale.order_by(
            GradingScaleEntry.point_value.desc(),
            GradingScaleEntry.label
        ).all()

    def get_grade_point_map(self):
        """Return {grade label: Decimal grade points}"""
        return {entry.label: entry.point_value for entry in self.grading_scale}

    def has_grading_scale(self):
        return self.grading_scale.count() > 0

    def get_modules(self, semester_id=None):
        """
        All modules of this user, optionally limited to one semester
        """
        query = self.modules
        if semester_id is not None:
            query = query.filter(Module.semester_id == semester_id)
        return query.order_by(Module.created_at, Module.id).all()

    def calculate_gpa(self, semester_id=None):
        """
        Calculate GPA for one semester or cumulatively

        Args:
            semester_id: Restrict to this semester; None for cumulative GPA

        Returns:
            Decimal: GPA with 2 decimal places (0.00 when nothing counts)
        """
        return compute_gpa(self.get_modules(semester_id), self.get_grade_point_map())

    def get_semesters(self, newest_first=True):
        if newest_first:
            return self.semesters.order_by(Semester.created_at.desc(), Semester.id.desc()).all()
        return self.semesters.order_by(Semester.created_at, Semester.id).all()

    def get_current_semester(self):
        return self.semesters.filter(Semester.is_current.is_(True)).first()


class Profile(db.Model):
    """
    Student Profile - identity and academic metadata
    One per user, created at signup
    """
    __tablename__ = 'profile'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, unique=True)

    # Basic Information
    full_name = db.Column(db.String(200), nullable=False)
    registration_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    phone_number = db.Column(db.String(30), nullable=True)

    # Academic Information
    institution = db.Column(db.String(200), nullable=False)  # "University of Colombo"
    program = db.Column(db.String(200), nullable=False)  # "BSc Computer Science"
    start_year = db.Column(db.Integer, nullable=False)
    end_year = db.Column(db.Integer, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_profile_institution_program', 'institution', 'program'),
    )

    def __repr__(self):
        return f'<Profile {self.registration_number} - {self.full_name}>'

    @property
    def enrollment_period(self):
        return f'{self.start_year} - {self.end_year}'

    def update_from(self, data):
        """
        Validate and apply profile fields from a form or JSON dict

        Raises:
            ValidationFailed: Missing/invalid field or duplicate registration number
        """
        full_name = _required_text(data, 'full_name', 'Full name', 200)
        institution = _required_text(data, 'institution', 'Institution', 200)
        program = _required_text(data, 'program', 'Program', 200)
        registration_number = _required_text(data, 'registration_number', 'Registration number', 50)
        start_year = parse_year(data.get('start_year'), 'Start year')
        end_year = parse_year(data.get('end_year'), 'End year')

        if end_year < start_year:
            raise ValidationFailed('End year cannot be before start year.')

        if Profile.registration_taken(registration_number, exclude_user_id=self.user_id):
            raise ValidationFailed('This registration number is already registered.')

        self.full_name = full_name
        self.institution = institution
        self.program = program
        self.registration_number = registration_number
        self.phone_number = _optional_text(data, 'phone_number', 30)
        self.start_year = start_year
        self.end_year = end_year

    @staticmethod
    def registration_taken(registration_number, exclude_user_id=None):
        query = Profile.query.filter_by(registration_number=registration_number)
        if exclude_user_id is not None:
            query = query.filter(Profile.user_id != exclude_user_id)
        return db.session.query(query.exists()).scalar()

    @staticmethod
    def list_peers(institution, program):
        """Profiles sharing an institution and program, by name"""
        return Profile.query.filter_by(
            institution=institution,
            program=program
        ).order_by(Profile.full_name, Profile.id).all()


class GradingScaleEntry(db.Model):
    """
    Grading Scale Entry - maps a grade label to grade points for one user
    Percentage range is for reference only and never used in GPA
    """
    __tablename__ = 'grading_scale_entry'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)

    label = db.Column(db.String(20), nullable=False)  # "A+"
    point_value = db.Column(db.Numeric(3, 2), nullable=False)  # 4.00
    min_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    max_percentage = db.Column(db.Numeric(5, 2), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'label', name='uq_grading_scale_user_label'),
    )

    def __repr__(self):
        return f'<GradingScaleEntry {self.label}={self.point_value}>'

    @property
    def percentage_range(self):
        """Display string such as "85 - 89%", or empty if not set"""
        if self.min_percentage is None and self.max_percentage is None:
            return ''
        low = '' if self.min_percentage is None else f'{self.min_percentage.normalize():f}'
        high = '' if self.max_percentage is None else f'{self.max_percentage.normalize():f}'
        return f'{low} - {high}%'

    @staticmethod
    def parse_rows(labels, point_values, min_percentages=None, max_percentages=None):
        """
        Build validated entry dicts from parallel form lists

        Rows with a blank label are ignored.

        Returns:
            list: [{'label', 'point_value', 'min_percentage', 'max_percentage'}, ...]

        Raises:
            ValidationFailed: Invalid number, duplicate label or no rows at all
        """
        min_percentages = list(min_percentages or [])
        max_percentages = list(max_percentages or [])

        rows = []
        seen = set()
        for index, label in enumerate(labels):
            label = (label or '').strip()
            if not label:
                continue
            if len(label) > 20:
                raise ValidationFailed('Grade labels must be at most 20 characters.')
            if label in seen:
                raise ValidationFailed(f'Grade "{label}" appears more than once.')
            seen.add(label)

            point_value = point_values[index] if index < len(point_values) else ''
            min_pct = parse_percentage(min_percentages[index] if index < len(min_percentages) else None)
            max_pct = parse_percentage(max_percentages[index] if index < len(max_percentages) else None)
            if min_pct is not None and max_pct is not None and min_pct > max_pct:
                raise ValidationFailed(f'Grade "{label}": minimum % cannot exceed maximum %.')

            rows.append({
                'label': label,
                'point_value': parse_grade_point(point_value),
                'min_percentage': min_pct,
                'max_percentage': max_pct
            })

        if not rows:
            raise ValidationFailed('Please add at least one valid grade.')

        return rows

    @staticmethod
    def replace_for_user(user, rows):
        """
        Replace a user's whole grading scale in one transaction

        Args:
            user: Owner
            rows: Output of parse_rows()
        """
        # Bulk DELETE runs before the INSERTs, so labels can be reused
        GradingScaleEntry.query.filter_by(user_id=user.id).delete(synchronize_session='fetch')
        for row in rows:
            db.session.add(GradingScaleEntry(user_id=user.id, **row))
        commit_changes()


class Semester(db.Model):
    """
    Semester - an academic term owned by one user
    At most one semester per user has is_current set
    """
    __tablename__ = 'semester'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)  # "Semester 1"
    academic_year = db.Column(db.String(20), nullable=False)  # "2024/2025"
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    is_current = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Deleting a semester deletes its modules
    modules = db.relationship(
        'Module', backref='semester', lazy='select',
        cascade='all, delete-orphan', order_by='Module.created_at'
    )

    __table_args__ = (
        # One current semester per user, enforced by the database
        db.Index(
            'uq_semester_current_per_user', 'user_id',
            unique=True,
            sqlite_where=db.text('is_current = 1'),
            postgresql_where=db.text('is_current')
        ),
    )

    def __repr__(self):
        current = ' (current)' if self.is_current else ''
        return f'<Semester {self.name} {self.academic_year}{current}>'

    @property
    def display_name(self):
        return f'{self.name} - {self.academic_year}'

    @property
    def total_credits(self):
        """Credit hours of modules that were not dropped"""
        return total_credit_hours(self.modules)

    def calculate_gpa(self):
        return self.user.calculate_gpa(self.id)

    def update_from(self, data):
        """
        Validate and apply name, academic year and dates
        is_current is handled by save()
        """
        name = _required_text(data, 'name', 'Semester name', 100)
        academic_year = _required_text(data, 'academic_year', 'Academic year', 20)
        start_date = parse_date(data.get('start_date'), 'Start date')
        end_date = parse_date(data.get('end_date'), 'End date')

        if start_date and end_date and end_date < start_date:
            raise ValidationFailed('End date cannot be before start date.')

        self.name = name
        self.academic_year = academic_year
        self.start_date = start_date
        self.end_date = end_date

    def save(self, make_current=False):
        """
        Persist this semester, optionally as the user's only current one

        Clearing the flag on the user's other semesters and writing this
        one happen in a single transaction: if any statement fails, the
        whole change is rolled back and nothing is marked current.

        Args:
            make_current: Whether this semester becomes the current one
        """
        with db.session.no_autoflush:
            if make_current:
                others = Semester.query.filter(
                    Semester.user_id == self.user_id,
                    Semester.is_current.is_(True)
                )
                if self.id is not None:
                    others = others.filter(Semester.id != self.id)
                others.update({Semester.is_current: False}, synchronize_session=False)

            self.is_current = bool(make_current)
            db.session.add(self)

        commit_changes()

    def delete(self):
        """Delete this semester and, by cascade, all of its modules"""
        db.session.delete(self)
        commit_changes()


class Module(db.Model):
    """
    Module - a course taken in a semester
    grade is free text matched against the owner's grading scale
    """
    __tablename__ = 'module'

    id = db.Column(db.Integer, primary_key=True)
    semester_id = db.Column(db.Integer, db.ForeignKey('semester.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)

    code = db.Column(db.String(20), nullable=False)  # "CS2012"
    name = db.Column(db.String(200), nullable=False)  # "Data Structures"
    credit_hours = db.Column(db.Integer, nullable=False)
    grade = db.Column(db.String(20), nullable=False)  # "A-"
    module_type = db.Column(db.Enum(*MODULE_TYPES, name='module_type'), nullable=False, default='compulsory')
    attempt_type = db.Column(db.Enum(*ATTEMPT_TYPES, name='attempt_type'), nullable=False, default='first_attempt')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Module {self.code} {self.grade} ({self.credit_hours} cr)>'

    @property
    def is_dropped(self):
        return self.attempt_type == 'dropped'

    @property
    def module_type_label(self):
        return MODULE_TYPE_LABELS.get(self.module_type, self.module_type)

    @property
    def attempt_type_label(self):
        return ATTEMPT_TYPE_LABELS.get(self.attempt_type, self.attempt_type)

    def update_from(self, data):
        """
        Validate and apply module fields from a form or JSON dict

        Raises:
            ValidationFailed: Missing or invalid field
        """
        code = _required_text(data, 'code', 'Module code', 20)
        name = _required_text(data, 'name', 'Module name', 200)
        credit_hours = parse_credit_hours(data.get('credit_hours'))
        grade = _required_text(data, 'grade', 'Grade', 20)
        module_type = _choice(data, 'module_type', MODULE_TYPES, 'compulsory')
        attempt_type = _choice(data, 'attempt_type', ATTEMPT_TYPES, 'first_attempt')

        self.code = code
        self.name = name
        self.credit_hours = credit_hours
        self.grade = grade
        self.module_type = module_type
        self.attempt_type = attempt_type


# ============================================================================
# LEADERBOARD
# ============================================================================

def build_leaderboard(institution, program, page=1, per_page=10):
    """
    Rank every profile of an institution + program by cumulative GPA

    The whole filtered set is ranked first and only then paginated, so a
    student's rank does not depend on which page is being viewed.

    Args:
        institution: Institution name shared by the peers
        program: Program name shared by the peers
        page: 1-based page number (clamped to the valid range)
        per_page: Entries per page

    Returns:
        dict: {'entries', 'total', 'total_pages', 'page', 'per_page'}
    """
    profiles = Profile.list_peers(institution, program)
    user_ids = [p.user_id for p in profiles]

    # Two bulk reads instead of one GPA query per profile
    scales = {}
    scale_rows = db.session.query(
        GradingScaleEntry.user_id, GradingScaleEntry.label, GradingScaleEntry.point_value
    ).filter(GradingScaleEntry.user_id.in_(user_ids))
    for row in scale_rows:
        scales.setdefault(row.user_id, {})[row.label] = row.point_value

    modules = {}
    module_rows = db.session.query(
        Module.user_id, Module.credit_hours, Module.grade, Module.attempt_type
    ).filter(Module.user_id.in_(user_ids))
    for row in module_rows:
        modules.setdefault(row.user_id, []).append(
            GradedModule(row.credit_hours, row.grade, row.attempt_type)
        )

    entries = [
        {
            'profile_id': profile.id,
            'user_id': profile.user_id,
            'full_name': profile.full_name,
            'registration_number': profile.registration_number,
            'gpa': compute_gpa(modules.get(profile.user_id, []), scales.get(profile.user_id, {}))
        }
        for profile in profiles
    ]

    ranked = rank_by_gpa(entries)
    page_entries, total_pages, page = paginate(ranked, page, per_page)

    return {
        'entries': page_entries,
        'total': len(ranked),
        'total_pages': total_pages,
        'page': page,
        'per_page': per_page
    }

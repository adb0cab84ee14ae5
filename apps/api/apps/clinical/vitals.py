"""
Vital signs interpretation and narrative formatting.

Pure functions: they accept a VitalSigns instance or any object/dict
exposing the same measurement names, and never touch the database.
"""
from typing import Any, Optional

# Narrative returned when no measurement is present
NO_ANOMALY_NARRATIVE = 'Constantes vitales prises, aucune anomalie notable.'

CONTROL_SUMMARY_HEADER = 'CONSTANTES VITALES (Contrôle du {date}):'


def _get(vitals: Any, name: str):
    if isinstance(vitals, dict):
        return vitals.get(name)
    return getattr(vitals, name, None)


def format_number(value) -> str:
    """
    Render a measurement the way staff write it: no trailing ".0".

    >>> format_number(38.0)
    '38'
    >>> format_number(37.8)
    '37.8'
    """
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def calculate_bmi(weight: Optional[float], height_cm: Optional[float]) -> float:
    """BMI rounded to one decimal; 0 when weight or height is missing or not positive."""
    if not weight or not height_cm or weight <= 0 or height_cm <= 0:
        return 0
    height_m = height_cm / 100
    return round(weight / (height_m * height_m), 1)


def interpret_bmi(bmi: float) -> str:
    if bmi < 18.5:
        return 'Insuffisance pondérale'
    if bmi < 25:
        return 'Poids normal'
    if bmi < 30:
        return 'Surpoids'
    return 'Obésité'


def interpret_blood_pressure(systolic: int, diastolic: int) -> str:
    if systolic < 90 or diastolic < 60:
        return 'Hypotension'
    if systolic < 120 and diastolic < 80:
        return 'Normale'
    if systolic < 130 and diastolic < 80:
        return 'Élevée'
    if systolic < 140 or diastolic < 90:
        return 'Hypertension stade 1'
    return 'Hypertension stade 2'


def format_vital_signs_as_symptoms(vitals: Any) -> str:
    """
    Qualitative narrative used as the `symptoms` of a consultation.

    Thresholds:
    - temperature: > 37.5 fever, < 36 hypothermia
    - blood pressure (both values required): systolic > 140 or diastolic > 90
      hypertension, systolic < 90 or diastolic < 60 hypotension
    - heart rate: > 100 tachycardia, < 60 bradycardia
    - SpO2: < 95 desaturation
    - BMI appended when weight and height are both present
    """
    parts = []

    temperature = _get(vitals, 'temperature')
    if temperature:
        label = format_number(temperature)
        if temperature > 37.5:
            parts.append(f'Fièvre ({label}°C)')
        elif temperature < 36:
            parts.append(f'Hypothermie ({label}°C)')
        else:
            parts.append(f'Température normale ({label}°C)')

    systolic = _get(vitals, 'blood_pressure_systolic')
    diastolic = _get(vitals, 'blood_pressure_diastolic')
    if systolic and diastolic:
        reading = f'{format_number(systolic)}/{format_number(diastolic)} mmHg'
        if systolic > 140 or diastolic > 90:
            parts.append(f'Hypertension ({reading})')
        elif systolic < 90 or diastolic < 60:
            parts.append(f'Hypotension ({reading})')
        else:
            parts.append(f'Tension artérielle normale ({reading})')

    heart_rate = _get(vitals, 'heart_rate')
    if heart_rate:
        label = format_number(heart_rate)
        if heart_rate > 100:
            parts.append(f'Tachycardie ({label} bpm)')
        elif heart_rate < 60:
            parts.append(f'Bradycardie ({label} bpm)')
        else:
            parts.append(f'Fréquence cardiaque normale ({label} bpm)')

    saturation = _get(vitals, 'oxygen_saturation')
    if saturation:
        label = format_number(saturation)
        if saturation < 95:
            parts.append(f'Désaturation ({label}%)')
        else:
            parts.append(f'Saturation normale ({label}%)')

    weight = _get(vitals, 'weight')
    height = _get(vitals, 'height')
    if weight and height:
        height_m = height / 100
        bmi = weight / (height_m * height_m)
        parts.append(
            f'IMC: {bmi:.1f} (Poids: {format_number(weight)}kg, Taille: {format_number(height)}cm)'
        )

    notes = _get(vitals, 'notes')
    if notes:
        parts.append(f'Notes: {notes}')

    return '. '.join(parts) if parts else NO_ANOMALY_NARRATIVE


def format_control_vitals_summary(vitals: Any, when) -> str:
    """
    Line-per-measurement summary written on a control consultation.

    Returns an empty string when nothing was measured.
    """
    lines = []

    temperature = _get(vitals, 'temperature')
    if temperature:
        lines.append(f'Température: {format_number(temperature)}°C')

    systolic = _get(vitals, 'blood_pressure_systolic')
    diastolic = _get(vitals, 'blood_pressure_diastolic')
    if systolic and diastolic:
        lines.append(
            f'Tension artérielle: {format_number(systolic)}/{format_number(diastolic)} mmHg '
            f'({interpret_blood_pressure(systolic, diastolic)})'
        )

    heart_rate = _get(vitals, 'heart_rate')
    if heart_rate:
        lines.append(f'Fréquence cardiaque: {format_number(heart_rate)} bpm')

    weight = _get(vitals, 'weight')
    if weight:
        lines.append(f'Poids: {format_number(weight)} kg')

    height = _get(vitals, 'height')
    if height:
        lines.append(f'Taille: {format_number(height)} cm')

    bmi = calculate_bmi(weight, height)
    if bmi:
        lines.append(f'IMC: {format_number(bmi)} ({interpret_bmi(bmi)})')

    saturation = _get(vitals, 'oxygen_saturation')
    if saturation:
        lines.append(f'SpO2: {format_number(saturation)}%')

    respiratory_rate = _get(vitals, 'respiratory_rate')
    if respiratory_rate:
        lines.append(f'Fréquence respiratoire: {format_number(respiratory_rate)}/min')

    notes = _get(vitals, 'notes')
    if notes:
        lines.append(f'Notes: {notes}')

    if not lines:
        return ''
    header = CONTROL_SUMMARY_HEADER.format(date=when.strftime('%d/%m/%Y'))
    return header + '\n' + '\n'.join(lines)

"""
Static academic suggestions used by the profile form.

Without a university, the universities of the country are suggested;
with one, its faculties (or a generic list of fields).
"""
from typing import List, Optional

SENEGAL_UNIVERSITIES = [
    'Université Cheikh Anta Diop (UCAD)',
    'Université Gaston Berger (UGB)',
    'Université Assane Seck de Ziguinchor (UASZ)',
    'Université Alioune Diop de Bambey (UADB)',
    'Université de Thiès (UT)',
    'Université du Sine Saloum El-Hâdj Ibrahima NIASS (USSEIN)',
    'Université Amadou Mahtar MBOW (UAM)',
    'Université Virtuelle du Sénégal (UVS)',
    'École Supérieure Polytechnique (ESP)',
    "Institut Supérieur d'Entrepreneurship et de Gestion (ISEG)",
    'Institut Africain de Management (IAM)',
    'SupDeCo',
    'BEM Management School',
]

SENEGAL_FACULTIES = {
    ('ucad', 'cheikh anta diop'): [
        'Faculté des Sciences et Techniques (FST)',
        "Faculté de Médecine, de Pharmacie et d'Odonto-Stomatologie (FMPOS)",
        'Faculté des Lettres et Sciences Humaines (FLSH)',
        'Faculté des Sciences Juridiques et Politiques (FSJP)',
        'Faculté des Sciences Économiques et de Gestion (FASEG)',
        "Faculté des Sciences et Technologies de l'Éducation et de la Formation (FASTEF)",
        'Ecole Supérieure Polytechnique (ESP)',
        'Institut de Population, Développement et Santé de la Reproduction (IPDSR)',
    ],
    ('ugb', 'gaston berger'): [
        'UFR Sciences Appliquées et Technologie (SAT)',
        'UFR Sciences de la Santé (2S)',
        'UFR Lettres et Sciences Humaines (LSH)',
        'UFR Sciences Juridiques et Politiques (SJP)',
        'UFR Sciences Économiques et de Gestion (SEG)',
        "UFR Sciences Agronomiques, de l'Aquaculture et des Technologies Alimentaires (S2ATA)",
        "UFR Sciences de l'Éducation, de la Formation et du Sport (SEFS)",
        'UFR Civilisations, Religions, Arts et Communication (CRAC)',
    ],
}

SENEGAL_GENERIC_FIELDS = [
    'Droit', 'Médecine', 'Informatique', 'Gestion', 'Economie', 'Lettres Modernes',
    'Sociologie', 'Anglais', 'Mathématiques', 'Physique-Chimie', 'Biologie',
    'Géographie', 'Histoire',
]

FRANCE_UNIVERSITIES = [
    'Sorbonne Université',
    'Université Paris-Saclay',
    'Université Paris Cité',
    'Université de Bordeaux',
    'Aix-Marseille Université',
    'Université de Lyon',
    'Université de Strasbourg',
]

FRANCE_FIELDS = ['Droit', 'Médecine', 'Informatique', 'Sciences', 'Lettres']


def get_suggestions(country: Optional[str], university: Optional[str] = None) -> List[str]:
    if not country or not country.strip():
        return []
    country_key = country.strip().lower()
    university_key = university.strip().lower() if university and university.strip() else ''

    if country_key in ('sénégal', 'senegal'):
        if not university_key:
            return list(SENEGAL_UNIVERSITIES)
        for aliases, faculties in SENEGAL_FACULTIES.items():
            if any(alias in university_key for alias in aliases):
                return list(faculties)
        return list(SENEGAL_GENERIC_FIELDS)

    if country_key == 'france':
        return list(FRANCE_FIELDS) if university_key else list(FRANCE_UNIVERSITIES)

    return []

"""
Minimal reader for word-processor (.docx) documents: just the body
paragraphs, in order, with their text and list numbering format.

A .docx is a zip archive of WordprocessingML parts. Paragraphs live in
word/document.xml. A list paragraph points at a numbering instance, which
points at an abstract numbering definition in word/numbering.xml, whose
level gives the number format ("decimal", "upperLetter", ...).
"""
import logging
import zipfile

from typing import Dict, List, NamedTuple, Optional, Tuple
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)

W = '{http://schemas.openxmlformats.org/wordprocessingml/2006/main}'


class Paragraph(NamedTuple):
    text: str
    # None for a paragraph that is not a list item
    num_fmt: Optional[str]


def read_paragraphs(path) -> List[Paragraph]:
    """
    Raises IOError if the file is not a readable word document.
    """
    try:
        with zipfile.ZipFile(str(path)) as archive:
            document = ET.fromstring(archive.read('word/document.xml'))
            if 'word/numbering.xml' in archive.namelist():
                formats = _numbering_formats(ET.fromstring(archive.read('word/numbering.xml')))
            else:
                formats = {}
    except (zipfile.BadZipFile, KeyError, ET.ParseError) as e:
        raise IOError('Cannot read word document "{}": {}'.format(path, e)) from e

    body = document.find(W + 'body')
    if body is None:
        return []
    return [Paragraph(_paragraph_text(p), _paragraph_format(p, formats))
            for p in body.findall(W + 'p')]


def _numbering_formats(numbering: ET.Element) -> Dict[Tuple[str, str], str]:
    """Maps (numId, ilvl) to the number format of that list level."""
    abstract: Dict[Tuple[str, str], str] = {}
    for abstract_num in numbering.findall(W + 'abstractNum'):
        abstract_id = abstract_num.get(W + 'abstractNumId')
        for level in abstract_num.findall(W + 'lvl'):
            num_fmt = level.find(W + 'numFmt')
            if num_fmt is not None:
                abstract[(abstract_id, level.get(W + 'ilvl'))] = num_fmt.get(W + 'val')

    formats = {}
    for num in numbering.findall(W + 'num'):
        ref = num.find(W + 'abstractNumId')
        if ref is None:
            continue
        for (abstract_id, ilvl), num_fmt in abstract.items():
            if abstract_id == ref.get(W + 'val'):
                formats[(num.get(W + 'numId'), ilvl)] = num_fmt
    return formats


def _paragraph_format(para: ET.Element, formats: Dict[Tuple[str, str], str]) -> Optional[str]:
    num_pr = para.find(W + 'pPr/' + W + 'numPr')
    if num_pr is None:
        return None
    num_id = num_pr.find(W + 'numId')
    if num_id is None or num_id.get(W + 'val') == '0':
        return None
    ilvl = num_pr.find(W + 'ilvl')
    level = ilvl.get(W + 'val') if ilvl is not None else '0'
    return formats.get((num_id.get(W + 'val'), level))


def _paragraph_text(para: ET.Element) -> str:
    parts = []
    for run in para.iter(W + 'r'):
        for child in run:
            if child.tag == W + 't':
                parts.append(child.text or '')
            elif child.tag == W + 'tab':
                parts.append('\t')
            elif child.tag in (W + 'br', W + 'cr'):
                parts.append('\n')
            elif child.tag == W + 'sym':
                # Symbol-font characters, such as Word's delta, are private-use code points
                parts.append(chr(int(child.get(W + 'char'), 16)))
    return ''.join(parts)

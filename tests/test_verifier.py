#!/usr/bin/env python3
"""
ABOUTME: Tests for docx_anchor.verifier: survival checks after external edits
"""

import zipfile

import pytest
from lxml import etree

from _docx_anchor_helpers import (  # type: ignore[import-not-found]
    document_xml,
    make_docx,
    make_paragraph_tree,
    make_tree,
    make_zip,
    p_xml,
    sdt_xml,
)
from docx_anchor.common import (  # type: ignore[import-not-found]
    DOCUMENT_PART,
    W_SDT,
    MalformedContainerWarning,
    MalformedPackageError,
)
from docx_anchor.indexer import index_package, index_tree, new_anchor_id  # type: ignore[import-not-found]
from docx_anchor.package import open_package, serialize_package  # type: ignore[import-not-found]
from docx_anchor.verifier import (  # type: ignore[import-not-found]
    build_container_report,
    check_integrity,
    check_package,
    index_status,
    is_indexed,
)


def _strip_all_containers(tree):
    """Simulate an editor that deletes every content control but keeps its content."""
    for sdt in list(tree.iter(W_SDT)):
        content = sdt.find('{http://schemas.openxmlformats.org/wordprocessingml/2006/main}sdtContent')
        if content is not None:
            for child in list(content):
                sdt.addprevious(child)
        sdt.getparent().remove(sdt)


class TestCheckIntegrity:
    """Tests for check_integrity classification"""

    def test_detects_freshly_indexed_tree(self):
        result = index_tree(make_paragraph_tree('One', '', 'Three', 'Four'))
        report = check_integrity(result.tree)

        assert report.preserved is True
        assert report.total_containers == 3
        assert report.owned_container_count == 3
        assert report.malformed_count == 0
        assert sorted(report.found_ids) == sorted(result.anchors)

    def test_found_ids_in_document_order(self):
        result = index_tree(make_paragraph_tree('One', 'Two', 'Three'))
        report = check_integrity(result.tree)
        expected = [a.id for a in sorted(result.anchors.values(), key=lambda a: a.position)]
        assert report.found_ids == expected

    def test_destructive_edit(self):
        result = index_tree(make_paragraph_tree('One', 'Two'))
        _strip_all_containers(result.tree)
        report = check_integrity(result.tree)

        assert report.preserved is False
        assert report.owned_container_count == 0
        assert report.total_containers == 0
        assert report.found_ids == []

    def test_unindexed_document(self):
        report = check_integrity(make_paragraph_tree('Plain'))
        assert report.preserved is False
        assert report.total_containers == 0

    def test_foreign_containers_not_owned(self):
        root = make_tree(sdt_xml('customer-name', p_xml('ACME')) + sdt_xml('', p_xml('No tag')))
        report = check_integrity(root)

        assert report.total_containers == 2
        assert report.owned_container_count == 0
        assert report.foreign_container_count == 2
        assert report.preserved is False

    def test_malformed_containers_counted_and_skipped(self):
        anchor_id = new_anchor_id()
        root = make_tree(
            sdt_xml(anchor_id, p_xml('No content'), with_content=False)
            + sdt_xml('ignored', p_xml('No properties'), with_pr=False)
            + sdt_xml(new_anchor_id(), p_xml('Healthy'))
        )
        report = check_integrity(root)

        assert report.total_containers == 3
        assert report.malformed_count == 2
        assert report.owned_container_count == 1
        assert anchor_id not in report.found_ids
        assert report.preserved is True

        assert [w.missing for w in report.warnings] == [['sdtContent'], ['sdtPr']]
        assert all(isinstance(w, MalformedContainerWarning) for w in report.warnings)
        assert report.warnings[0].index == 1

    def test_owned_if_any_tag_has_prefix(self):
        anchor_id = new_anchor_id()
        root = make_tree(
            '<w:sdt><w:sdtPr><w:tag w:val="other"/><w:tag w:val="%s"/></w:sdtPr>'
            '<w:sdtContent>%s</w:sdtContent></w:sdt>' % (anchor_id, p_xml('Two tags'))
        )
        report = check_integrity(root)
        assert report.found_ids == [anchor_id]

    def test_does_not_mutate(self):
        result = index_tree(make_paragraph_tree('One', 'Two'))
        before = etree.tostring(result.tree)
        check_integrity(result.tree)
        check_integrity(result.tree)
        assert etree.tostring(result.tree) == before


class TestCheckPackage:
    """Tests for package-level verification helpers"""

    def test_round_trip_through_bytes(self):
        indexed, anchors = index_package(make_docx(['Alpha', 'Beta']))
        report = check_package(indexed)
        assert report.preserved
        assert set(report.found_ids) == set(anchors)

    def test_stripped_package(self):
        indexed, _ = index_package(make_docx(['Alpha', 'Beta']))
        package = open_package(indexed)
        _strip_all_containers(package.root)

        report = check_package(serialize_package(package))
        assert report.preserved is False
        assert report.owned_container_count == 0

    def test_unreadable_package(self):
        with pytest.raises(MalformedPackageError):
            check_package(b'garbage')

    def test_is_indexed(self):
        original = make_docx(['Alpha'])
        indexed, _ = index_package(original)
        assert is_indexed(original) is False
        assert is_indexed(indexed) is True

    def test_index_status_counts(self):
        indexed, anchors = index_package(make_docx(['Alpha', 'Beta']))
        status = index_status(indexed)
        assert status.container_count == 2
        assert status.owned_container_count == len(anchors) == 2
        assert status.indexed is True

    def test_index_status_ignores_tags_outside_properties(self):
        stray = f'<w:tag w:val="{new_anchor_id()}"/>'
        xml = document_xml(
            sdt_xml('customer-name', p_xml('ACME')).replace('<w:sdtContent>', f'<w:sdtContent>{stray}')
        )
        data = make_zip([(DOCUMENT_PART, xml.encode('utf-8'), zipfile.ZIP_DEFLATED)])
        status = index_status(data)

        assert status.container_count == 1
        assert status.owned_container_count == 0
        assert is_indexed(data) is False

    def test_is_indexed_rejects_broken_xml(self):
        data = make_zip([(DOCUMENT_PART, b'<w:document', zipfile.ZIP_DEFLATED)])
        with pytest.raises(MalformedPackageError):
            is_indexed(data)


class TestContainerReport:
    """Tests for build_container_report"""

    def test_lists_owned_and_foreign(self):
        anchor_id = new_anchor_id()
        xml = document_xml(
            sdt_xml(anchor_id, p_xml('Owned paragraph'))
            + sdt_xml('customer-name', p_xml('ACME'))
            + sdt_xml('broken', p_xml('x'), with_content=False)
        )
        data = make_zip([(DOCUMENT_PART, xml.encode('utf-8'), zipfile.ZIP_DEFLATED)])
        report = build_container_report(data)

        assert 'Containers in document: 3' in report
        assert f'Tag: {anchor_id}' in report
        assert 'owned anchor' in report
        assert 'foreign tag' in report
        assert 'WARNING: no sdtContent element' in report
        assert 'First paragraph: "Owned paragraph"' in report

    def test_empty_document(self):
        report = build_container_report(make_docx(['Nothing anchored']))
        assert 'Containers in document: 0' in report

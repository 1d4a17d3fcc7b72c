"""
Unit tests for the CSV importer.

These tests verify that the importer:
1. Creates concepts, relationships and properties from the three CSV files
2. Updates only what changed when the same data is imported again
3. Applies the whole import as one undoable edit
4. Rejects invalid input without touching the model
"""

import pytest

from archikit.archimate import Element, FolderType, Property, Relationship
from archikit.csvio import CSVImporter
from archikit.csvio.importer import detect_delimiter, normalise, unwrap_leading_chars
from archikit.exceptions import CSVParseError

ELEMENTS_HEADER = '"ID","Type","Name","Documentation"\n'
RELATIONS_HEADER = '"ID","Type","Name","Documentation","Source","Target"\n'


def business(model):
    return model.get_folder(FolderType.BUSINESS).elements


def relations(model):
    return model.get_folder(FolderType.RELATIONS).elements


def assert_test1_imported(model, importer):
    assert model.name == "Test Model"
    assert model.purpose == 'This is the Purpose of the Model. It has a line break and "some" quotes.'
    assert len(model.properties) == 2
    assert len(business(model)) == 3
    assert len(relations(model)) == 2
    assert importer.updated_concepts == {}


class TestDoImport:
    """Importing into an empty model."""

    def test_do_import(self, model, importer, data_dir):
        """Test a full import of the test1 files."""
        model_id = model.id
        importer.do_import(data_dir / "test1-elements.csv")

        assert_test1_imported(model, importer)
        assert model.id == model_id

    def test_undo_restores_model(self, model, importer, data_dir):
        """Test undo removes everything the import added."""
        importer.do_import(data_dir / "test1-elements.csv")

        model.command_stack.undo()

        assert model.name == ""
        assert model.purpose == ""
        assert len(model.properties) == 0
        assert len(business(model)) == 0
        assert len(relations(model)) == 0

    def test_redo_after_undo(self, model, importer, data_dir):
        """Test redo applies the import again."""
        importer.do_import(data_dir / "test1-elements.csv")
        model.command_stack.undo()
        model.command_stack.redo()

        assert_test1_imported(model, importer)

    def test_import_model_elements(self, importer, data_dir):
        """Test elements land in their default folders."""
        importer.do_import(data_dir / "test1-elements.csv")

        assert len(importer.new_concepts) == 5

        concept = importer.new_concepts["f00aa5b4"]
        assert isinstance(concept, Element)
        assert concept.type == "BusinessActor"
        assert concept.id == "f00aa5b4"
        assert concept.name == "Business Actor"
        assert concept.documentation == 'This is the Business Actor Documentation Here ""'

        concept = importer.new_concepts["d9fe8c17"]
        assert concept.type == "BusinessInterface"
        assert concept.name == "Business Interface"
        assert concept.documentation == ""

        concept = importer.new_concepts["f6a18059"]
        assert concept.type == "BusinessRole"
        assert concept.name == "Business Role"
        assert concept.documentation == "Some more docs Here"

    def test_import_relations(self, importer, data_dir):
        """Test relationships are created with their ends."""
        importer.do_import(data_dir / "test1-elements.csv")

        relation = importer.new_concepts["cdbfc933"]
        assert isinstance(relation, Relationship)
        assert relation.type == "AssignmentRelationship"
        assert relation.name == "Assignment relation"
        assert relation.documentation == 'Assignment documentation Is here "hello"'
        assert relation.source.id == "f00aa5b4"
        assert relation.target.id == "f6a18059"

        relation = importer.new_concepts["5854f8a3"]
        assert relation.type == "CompositionRelationship"
        assert relation.name == "Compo"
        assert relation.documentation == "Here it is again"
        assert relation.source.id == "f00aa5b4"
        assert relation.target.id == "d9fe8c17"

    def test_import_properties(self, model, importer, data_dir):
        """Test properties are added to their owners."""
        importer.do_import(data_dir / "test1-elements.csv")

        assert len(importer.new_properties) == 7
        actor = model.find_by_id("f00aa5b4")
        assert [p.key for p in actor.properties] == ["Actor Prop 1", "Actor Prop 2", "Actor Prop 3", "Actor Prop 4"]
        assert importer.new_properties[actor.properties[0]] is actor
        assert model.properties[0].key == "Model Prop 1"
        assert model.properties[0].value == "Model Value 1"

    def test_ids_generated_when_missing(self, model, importer, data_dir):
        """Test empty ids get generated identifiers."""
        importer.do_import(data_dir / "test3-elements.csv")

        assert len(importer.new_concepts) == 6
        for concept_id, concept in importer.new_concepts.items():
            assert concept_id
            assert concept.id == concept_id
        assert model.name == "No IDs Model"
        assert len(set(importer.new_concepts)) == 6

    def test_relations_file_is_optional(self, model, importer, write_csv):
        """Test a missing relations file is skipped."""
        path = write_csv("only-", elements=ELEMENTS_HEADER + '"e1","Goal","A goal",""\n')

        importer.do_import(path)

        assert list(importer.new_concepts) == ["e1"]
        assert model.get_folder(FolderType.MOTIVATION).elements[0].name == "A goal"

    def test_missing_file(self, importer, tmp_path):
        """Test a missing elements file raises an error."""
        with pytest.raises(CSVParseError, match="File not found"):
            importer.do_import(tmp_path / "nothing-elements.csv")


class TestReimport:
    """Importing into a model that already holds the data."""

    def test_import_with_updated_elements(self, model, importer, data_dir):
        """Test changed values update existing concepts."""
        importer.do_import(data_dir / "test1-elements.csv")
        assert_test1_imported(model, importer)

        importer = CSVImporter(model)
        importer.do_import(data_dir / "test2-elements.csv")

        assert importer.new_concepts == {}
        assert importer.new_properties == {}
        assert set(importer.updated_concepts) == {"f00aa5b4", "cdbfc933"}

        assert model.name == "Test Model changed"
        assert model.purpose == "Model Documentation Changed"
        assert len(model.properties) == 2

        element = model.find_by_id("f00aa5b4")
        assert element.type == "BusinessActor"
        assert element.name == "Name changed"
        assert element.documentation == 'This is the Business Actor Documentation Here ""'
        assert len(element.properties) == 4

        element = model.find_by_id("d9fe8c17")
        assert element.name == "Business Interface"
        assert element.documentation == ""
        assert len(element.properties) == 0

        relation = model.find_by_id("cdbfc933")
        assert relation.name == "Assignment relation changed"
        assert relation.documentation == "Assignment documentation changed"
        assert len(relation.properties) == 0

        relation = model.find_by_id("5854f8a3")
        assert relation.name == "Compo"
        assert len(relation.properties) == 1
        assert relation.properties[0].key == "This"
        assert relation.properties[0].value == "value changes"
        assert importer.updated_properties == {relation.properties[0]: "value"}

    def test_prior_values_recorded(self, model, importer, data_dir):
        """Test previous values are kept for updated concepts."""
        importer.do_import(data_dir / "test1-elements.csv")
        session = CSVImporter(model).do_import(data_dir / "test2-elements.csv")

        assert session.prior_values["f00aa5b4"] == {"name": "Business Actor"}
        assert session.prior_values["cdbfc933"] == {
            "name": "Assignment relation",
            "documentation": 'Assignment documentation Is here "hello"',
        }

    def test_undo_update_restores_previous_values(self, model, importer, data_dir):
        """Test undo restores updated values."""
        importer.do_import(data_dir / "test1-elements.csv")
        CSVImporter(model).do_import(data_dir / "test2-elements.csv")

        model.command_stack.undo()

        assert_test1_imported(model, importer)
        assert model.find_by_id("f00aa5b4").name == "Business Actor"
        assert model.find_by_id("5854f8a3").properties[0].value == "value"

    def test_same_file_twice_changes_nothing(self, model, importer, data_dir):
        """Test importing the same files twice changes nothing."""
        importer.do_import(data_dir / "test1-elements.csv")
        first_import = model.command_stack.undo_command

        importer = CSVImporter(model)
        importer.do_import(data_dir / "test1-elements.csv")

        assert importer.new_concepts == {}
        assert importer.new_properties == {}
        assert importer.updated_concepts == {}
        assert importer.updated_properties == {}
        assert model.command_stack.undo_command is first_import
        assert len(business(model)) == 3

    def test_relationship_ends_updated(self, model, importer, data_dir, write_csv):
        """Test changed relationship ends are updated."""
        importer.do_import(data_dir / "test1-elements.csv")
        path = write_csv(
            "ends-",
            elements=ELEMENTS_HEADER,
            relations=RELATIONS_HEADER
            + '"cdbfc933","AssignmentRelationship","Assignment relation",'
              '"Assignment documentation Is here ""hello""","f00aa5b4","d9fe8c17"\n',
        )

        importer = CSVImporter(model)
        importer.do_import(path)

        relation = model.find_by_id("cdbfc933")
        assert relation.target.id == "d9fe8c17"
        assert list(importer.updated_concepts) == ["cdbfc933"]

        model.command_stack.undo()
        assert relation.target.id == "f6a18059"

    def test_repeated_property_keys_match_in_order(self, model, importer, write_csv):
        """Test repeated property keys update in order."""
        elements = ELEMENTS_HEADER + '"e1","Goal","Goal",""\n'
        properties = '"ID","Key","Value"\n"e1","tag","one"\n"e1","tag","two"\n'
        importer.do_import(write_csv("dup-", elements=elements, properties=properties))

        goal = model.find_by_id("e1")
        assert [p.value for p in goal.properties] == ["one", "two"]

        properties = '"ID","Key","Value"\n"e1","tag","one"\n"e1","tag","2"\n"e1","tag","three"\n'
        importer = CSVImporter(model)
        importer.do_import(write_csv("dup-", elements=elements, properties=properties))

        assert [p.value for p in goal.properties] == ["one", "2", "three"]
        assert len(importer.new_properties) == 1
        assert list(importer.updated_properties.values()) == ["two"]


class TestImportErrors:
    """Invalid input is rejected and the model is left untouched."""

    def test_class_mismatch_aborts_import(self, model, importer, data_dir, write_csv):
        """Test an id with a different type aborts the import."""
        importer.do_import(data_dir / "test1-elements.csv")
        path = write_csv(
            "clash-",
            elements=ELEMENTS_HEADER
            + '"new1","BusinessActor","New one",""\n'
            + '"f6a18059","BusinessActor","Wrong class",""\n',
        )

        with pytest.raises(CSVParseError, match="Found element with same id but different class: f6a18059") as ex:
            CSVImporter(model).do_import(path)

        assert ex.value.line_number == 3
        assert len(business(model)) == 3
        assert model.find_by_id("new1") is None
        assert model.find_by_id("f6a18059").name == "Business Role"

    def test_find_concept_in_model(self, importer, data_dir):
        """Test an existing concept is found by id."""
        importer.do_import(data_dir / "test1-elements.csv")
        assert importer.find_concept_in_model("f00aa5b4", "BusinessActor") is not None
        assert importer.find_concept_in_model("unknown", "BusinessActor") is None

    def test_find_concept_in_model_different_class(self, importer, data_dir):
        """Test a type mismatch raises an error."""
        importer.do_import(data_dir / "test1-elements.csv")
        with pytest.raises(CSVParseError, match="Found element with same id but different class: f6a18059"):
            importer.find_concept_in_model("f6a18059", "BusinessActor")

    def test_id_of_non_concept_is_a_class_mismatch(self, model, importer):
        """Test an id owned by a non-concept is a type mismatch."""
        folder_id = model.get_folder(FolderType.BUSINESS).id
        with pytest.raises(CSVParseError, match="different class"):
            importer.find_concept_in_model(folder_id, "BusinessActor")

    def test_unresolved_relationship_source_aborts_import(self, model, importer, write_csv):
        """Test an unknown relationship source aborts the import."""
        path = write_csv(
            "dangling-",
            elements=ELEMENTS_HEADER + '"a","BusinessActor","A",""\n"b","BusinessRole","B",""\n',
            relations=RELATIONS_HEADER + '"r1","AssignmentRelationship","","","nowhere","b"\n',
        )

        with pytest.raises(CSVParseError, match="Referenced concept not found: nowhere"):
            importer.do_import(path)

        assert len(business(model)) == 0
        assert len(relations(model)) == 0
        assert not model.command_stack.can_undo()

    def test_empty_relationship_end_is_an_error(self, importer, write_csv):
        """Test an empty relationship end is an error."""
        path = write_csv(
            "noend-",
            elements=ELEMENTS_HEADER + '"a","BusinessActor","A",""\n',
            relations=RELATIONS_HEADER + '"r1","AssociationRelationship","","","a",""\n',
        )
        with pytest.raises(CSVParseError, match="Referenced concept ID is empty"):
            importer.do_import(path)

    def test_relationship_may_reference_relationship(self, model, importer, write_csv):
        """Test a relationship end may be another relationship."""
        path = write_csv(
            "relrel-",
            elements=ELEMENTS_HEADER + '"a","BusinessActor","A",""\n"b","BusinessRole","B",""\n',
            relations=RELATIONS_HEADER
            + '"r2","AssociationRelationship","","","a","r1"\n'
            + '"r1","AssignmentRelationship","","","a","b"\n',
        )
        importer.do_import(path)
        assert model.find_by_id("r2").target is model.find_by_id("r1")

    def test_invalid_id_aborts_import(self, model, importer, write_csv):
        """Test an invalid id aborts the import."""
        path = write_csv("badid-", elements=ELEMENTS_HEADER + '"bad id","BusinessActor","A",""\n')
        with pytest.raises(CSVParseError, match="Invalid characters in ID"):
            importer.do_import(path)
        assert len(business(model)) == 0

    def test_id_with_trailing_line_break_aborts_import(self, model, importer, write_csv):
        """Test a quoted id ending in a line break is rejected."""
        path = write_csv("breakid-", elements=ELEMENTS_HEADER + '"abc\n","Goal","G",""\n')
        with pytest.raises(CSVParseError, match="Invalid characters in ID"):
            importer.do_import(path)
        assert model.find_by_id("abc") is None
        assert model.get_folder(FolderType.MOTIVATION).elements == []

    def test_invalid_element_type(self, importer, write_csv):
        """Test an unknown element type is rejected."""
        path = write_csv("badtype-", elements=ELEMENTS_HEADER + '"x","Folder","A",""\n')
        with pytest.raises(CSVParseError, match="Invalid element type: Folder"):
            importer.do_import(path)

    def test_relationship_type_in_elements_file(self, importer, write_csv):
        """Test a relationship type in the elements file is rejected."""
        path = write_csv("reltype-", elements=ELEMENTS_HEADER + '"x","FlowRelationship","A",""\n')
        with pytest.raises(CSVParseError, match="Invalid element type"):
            importer.do_import(path)

    def test_duplicate_id(self, importer, write_csv):
        """Test a duplicate id is rejected."""
        path = write_csv(
            "dupid-",
            elements=ELEMENTS_HEADER + '"x","BusinessActor","A",""\n"x","BusinessActor","B",""\n',
        )
        with pytest.raises(CSVParseError, match="Duplicate ID: x"):
            importer.do_import(path)

    def test_short_record(self, importer, write_csv):
        """Test a short record is rejected with its line."""
        path = write_csv("short-", elements=ELEMENTS_HEADER + '"x","BusinessActor"\n')
        with pytest.raises(CSVParseError, match="Invalid record size") as ex:
            importer.do_import(path)
        assert ex.value.line_number == 2
        assert ex.value.file_path.endswith("short-elements.csv")

    def test_malformed_quoting(self, importer, write_csv):
        """Test malformed quoting is rejected."""
        path = write_csv("quote-", elements=ELEMENTS_HEADER + '"x"oops,"BusinessActor","A",""\n')
        with pytest.raises(CSVParseError, match="Malformed CSV"):
            importer.do_import(path)

    def test_unknown_property_owner(self, model, importer, write_csv):
        """Test an unknown property owner aborts the import."""
        path = write_csv(
            "owner-",
            elements=ELEMENTS_HEADER + '"a","BusinessActor","A",""\n',
            properties='"ID","Key","Value"\n"ghost","k","v"\n',
        )
        with pytest.raises(CSVParseError, match="Referenced concept not found: ghost"):
            importer.do_import(path)
        assert len(business(model)) == 0


class TestDialect:
    """Delimiters, encodings and spreadsheet quirks."""

    def test_tab_delimited_without_header(self, model, importer, write_csv):
        """Test a tab delimited file without a header."""
        path = write_csv("tab-", elements='"t1"\t"Node"\t"Server"\t"Rack 4"\n')
        importer.do_import(path)
        node = model.get_folder(FolderType.TECHNOLOGY).elements[0]
        assert (node.id, node.name, node.documentation) == ("t1", "Server", "Rack 4")

    def test_explicit_delimiter(self, model, write_csv):
        """Test an explicit delimiter overrides detection."""
        path = write_csv("semi-", elements='"ID";"Type";"Name";"Documentation"\n"s1";"Goal";"a,b";""\n')
        CSVImporter(model, delimiter=";").do_import(path)
        assert model.find_by_id("s1").name == "a,b"

    def test_byte_order_mark_is_ignored(self, model, importer, tmp_path):
        """Test a leading byte order mark is ignored."""
        path = tmp_path / "bom-elements.csv"
        path.write_bytes(("\ufeff" + ELEMENTS_HEADER + '"b1","Goal","Goal",""\n').encode("utf-8"))
        importer.do_import(path)
        assert model.find_by_id("b1") is not None

    def test_leading_chars_wrapper(self, model, importer, write_csv):
        """Test an unquoted ="value" field is read as the plain value."""
        path = write_csv("lead-", elements=ELEMENTS_HEADER + '"z1","Goal",="0012",""\n')
        importer.do_import(path)
        assert model.find_by_id("z1").name == "0012"

    def test_quoted_leading_chars_text_is_kept(self, model, importer, write_csv):
        """Test a quoted value that looks like the wrapper is kept as written."""
        path = write_csv("literal-", elements=ELEMENTS_HEADER + '"z2","Goal","=""x""",""\n')
        importer.do_import(path)
        assert model.find_by_id("z2").name == '="x"'

    def test_semicolons_detected_despite_commas_in_quotes(self, model, importer, write_csv):
        """Test commas inside quoted fields do not decide the delimiter."""
        path = write_csv("purpose-", elements=(
            '"";"ArchimateModel";"M";"Purpose: a, b, c, d"\n'
            '"g1";"Goal";"G";""\n'
        ))
        importer.do_import(path)
        assert model.name == "M"
        assert model.purpose == "Purpose: a, b, c, d"
        assert model.find_by_id("g1").name == "G"

    def test_detect_delimiter(self):
        """Test the delimiter is taken from the first record."""
        assert detect_delimiter('"a";"b";"c"\n') == ";"
        assert detect_delimiter('"a"\t"b"\n') == "\t"
        assert detect_delimiter('"a","b"\n') == ","
        assert detect_delimiter("single\n") == ","

    def test_detect_delimiter_ignores_quoted_text(self):
        """Test delimiters inside quotes or after a blank first line are handled."""
        assert detect_delimiter('"x";"a, b, c, d"\n') == ";"
        assert detect_delimiter('\n"a";"b"\n"c,d";"e"\n') == ";"
        assert detect_delimiter('"a\nb,c,d";"e"\n') == ";"

    def test_unwrap_leading_chars(self):
        """Test only unquoted wrapper fields are rewritten."""
        assert unwrap_leading_chars('"a",="007"\n') == '"a","007"\n'
        assert unwrap_leading_chars('="007";"b"\n', ";") == '"007";"b"\n'
        assert unwrap_leading_chars('"=""x"""\n') == '"=""x"""\n'
        assert unwrap_leading_chars('"a","b"\n') == '"a","b"\n'


class TestHelpers:

    def test_normalise(self, importer):
        """Test line breaks and tabs become spaces."""
        assert importer.normalise(None) == ""
        assert importer.normalise("ok here") == "ok here"
        assert importer.normalise("tab\there") == "tab here"
        assert importer.normalise("line\rfeed") == "line feed"
        assert importer.normalise("line\nfeed") == "line feed"
        assert importer.normalise("line\r\nfeed") == "line feed"

    def test_normalise_one_space_per_occurrence(self):
        """Test each break becomes one space before trimming."""
        assert normalise("a\n\nb") == "a  b"
        assert normalise("a\r\n\r\nb") == "a  b"
        assert normalise("a\t\r\nb") == "a  b"
        assert normalise("  padded \n") == "padded"

    @pytest.mark.parametrize("value", ["&", " ", "*", "$", "#", "", None, "ok id", "abc\n"])
    def test_check_id_for_invalid_characters_fail(self, importer, value):
        """Test invalid ids are rejected."""
        with pytest.raises(CSVParseError):
            importer.check_id_for_invalid_characters(value)

    @pytest.mark.parametrize("value", ["f00aa5b4", "123Za", "_-123uioP09..-_"])
    def test_check_id_for_invalid_characters_pass(self, importer, value):
        """Test valid ids are accepted."""
        importer.check_id_for_invalid_characters(value)

    def test_find_referenced_concept(self, importer, data_dir):
        """Test a referenced concept is found."""
        importer.do_import(data_dir / "test1-elements.csv")
        assert importer.find_referenced_concept("f6a18059") is not None
        assert isinstance(importer.find_referenced_concept("5854f8a3"), Relationship)

    def test_find_referenced_concept_not_found(self, importer, data_dir):
        """Test an unknown reference raises an error."""
        importer.do_import(data_dir / "test1-elements.csv")
        with pytest.raises(CSVParseError):
            importer.find_referenced_concept("someid")

    def test_find_referenced_concept_null(self, importer):
        """Test an empty reference raises an error."""
        with pytest.raises(CSVParseError):
            importer.find_referenced_concept(None)

    def test_is_concept_type(self, importer):
        """Test concept type names are recognised."""
        assert not importer.is_concept_type(None)
        assert not importer.is_concept_type("Folder")
        assert importer.is_concept_type("AccessRelationship")
        assert importer.is_concept_type("BusinessActor")

    def test_get_property(self, importer):
        """Test a property is found by key."""
        element = Element(id="e", type="BusinessActor")
        prop = Property(key="key", value="value")
        element.properties.append(prop)

        assert importer.get_property(element, "key") is prop
        assert importer.get_property(element, "key2") is None

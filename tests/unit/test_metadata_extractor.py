"""Unit tests for metadata extraction from C# source and T-SQL DDL"""

import pytest
from pydantic import BaseModel

from autodocops.exceptions import ValidationError
from autodocops.models.metadata import (
    ApiMetadata,
    ExtractionWarning,
    SchemaMetadata,
    SourceKind,
)
from autodocops.services.metadata_extractor import (
    MetadataExtractor,
    extract,
    extract_project_metadata,
)

CONTROLLER_SOURCE = """
using Microsoft.AspNetCore.Mvc;
using Shop.Services;

namespace Shop.Api.Controllers;

[ApiController]
[Route("api/[controller]")]
public class ProductsController : ControllerBase
{
    private readonly IProductService _service;

    [HttpGet]
    public async Task<ActionResult<IEnumerable<Product>>> GetAll([FromQuery] int page = 1)
    {
        return Ok(await _service.ListAsync(page));
    }

    [HttpGet("{id}")]
    public async Task<ActionResult<Product>> GetById([FromRoute] int id)
    {
        return Ok(await _service.GetAsync(id));
    }

    [HttpPost]
    public async Task<IActionResult> Create([FromBody] Product product)
    {
        await _service.AddAsync(product);
        return NoContent();
    }
}

public class Product
{
    public int Id { get; set; }
    public string? Name { get; set; }
    public decimal Price { get; init; }
}

public class ProductService : IProductService
{
    public Task<List<Product>> ListAsync(int page)
    {
        return Task.FromResult(new List<Product>());
    }
}
"""

SCHEMA_SOURCE = """
-- Customers and their orders
CREATE TABLE [dbo].[Customers] (
    [Id] INT IDENTITY(1,1) NOT NULL,
    [Email] NVARCHAR(255) NOT NULL,
    [CreatedAt] DATETIME2 DEFAULT (GETDATE()),
    CONSTRAINT [PK_Customers] PRIMARY KEY CLUSTERED ([Id])
);

/* Orders reference customers */
CREATE TABLE dbo.Orders (
    Id INT PRIMARY KEY,
    CustomerId INT NOT NULL REFERENCES dbo.Customers(Id),
    Total DECIMAL(18, 2) NULL
);

CREATE UNIQUE INDEX IX_Customers_Email ON dbo.Customers (Email);
GO

CREATE VIEW dbo.CustomerTotals AS
SELECT c.Id, SUM(o.Total) AS Total FROM dbo.Customers c
JOIN dbo.Orders o ON o.CustomerId = c.Id GROUP BY c.Id
GO

CREATE PROCEDURE dbo.GetOrdersByCustomer @CustomerId INT, @Since DATETIME2
AS
BEGIN
    SELECT * FROM dbo.Orders WHERE CustomerId = @CustomerId;
END
GO
"""


class TestApiAnalyzer:
    """Test controller, model and service extraction"""

    def test_extracts_controller_routes_and_actions(self):
        result = extract(CONTROLLER_SOURCE, SourceKind.API)
        tree = result.tree

        assert isinstance(tree, ApiMetadata)
        assert result.warnings == ()
        assert len(tree.controllers) == 1

        controller = tree.controllers[0]
        assert controller.name == "ProductsController"
        assert controller.route == "api/products"
        assert [a.name for a in controller.actions] == ["GetAll", "GetById", "Create"]
        assert [a.http_method for a in controller.actions] == ["GET", "GET", "POST"]
        assert controller.actions[1].route == "{id}"

    def test_extracts_parameters(self):
        controller = extract(CONTROLLER_SOURCE, SourceKind.API).tree.controllers[0]

        page = controller.actions[0].parameters[0]
        assert (page.name, page.type, page.source, page.required) == ("page", "int", "query", False)

        body = controller.actions[2].parameters[0]
        assert (body.name, body.type, body.source) == ("product", "Product", "body")

    def test_extracts_models_and_services(self):
        tree = extract(CONTROLLER_SOURCE, SourceKind.API).tree

        assert [m.name for m in tree.models] == ["Product"]
        properties = {p.name: p for p in tree.models[0].properties}
        assert set(properties) == {"Id", "Name", "Price"}
        assert properties["Name"].nullable is True
        assert properties["Name"].type == "string"

        assert [s.name for s in tree.services] == ["ProductService"]
        assert tree.services[0].interfaces == ("IProductService",)
        assert "ListAsync" in tree.services[0].methods

        assert tree.dependencies == ("Microsoft.AspNetCore.Mvc", "Shop.Services")

    def test_summary_lists_endpoints(self):
        summary = extract(CONTROLLER_SOURCE, SourceKind.API).summary()

        assert "Endpoints: 3" in summary
        assert "GET /api/products/{id} (ProductsController.GetById)" in summary

    def test_truncated_source_returns_partial_tree_with_warnings(self):
        truncated = CONTROLLER_SOURCE[: CONTROLLER_SOURCE.index("Create(")]

        result = extract(truncated, SourceKind.API)

        assert [a.name for a in result.tree.controllers[0].actions] == ["GetAll", "GetById"]
        messages = [w.message for w in result.warnings]
        assert any("Unbalanced braces" in m for m in messages)
        assert any("no recognizable action method" in m for m in messages)
        assert any(w.element == "source" for w in result.warnings)

    def test_source_without_classes_warns(self):
        result = extract("// just a comment\nvar x = 1;", SourceKind.API)

        assert result.tree.controllers == ()
        assert [w.message for w in result.warnings] == ["No class declarations found"]


class TestSchemaAnalyzer:
    """Test table, key, index, view and routine extraction"""

    def test_extracts_tables_and_columns(self):
        result = extract(SCHEMA_SOURCE, SourceKind.DATABASE)
        tree = result.tree

        assert isinstance(tree, SchemaMetadata)
        assert result.warnings == ()
        assert [t.qualified_name for t in tree.tables] == ["dbo.Customers", "dbo.Orders"]

        customers = {c.name: c for c in tree.tables[0].columns}
        assert customers["Id"].identity is True
        assert customers["Id"].primary_key is True
        assert customers["Id"].nullable is False
        assert customers["Email"].data_type == "NVARCHAR(255)"
        assert customers["CreatedAt"].default == "(GETDATE())"
        assert customers["CreatedAt"].nullable is True

        orders = {c.name: c for c in tree.tables[1].columns}
        assert orders["Total"].data_type == "DECIMAL(18, 2)"
        assert orders["Id"].primary_key is True

    def test_extracts_keys_and_indexes(self):
        tree = extract(SCHEMA_SOURCE, SourceKind.DATABASE).tree
        customers, orders = tree.tables

        index_names = {i.name for i in customers.indexes}
        assert index_names == {"PK_Customers", "IX_Customers_Email"}
        email_index = next(i for i in customers.indexes if i.name == "IX_Customers_Email")
        assert email_index.unique is True
        assert email_index.columns == ("Email",)

        assert len(orders.foreign_keys) == 1
        fk = orders.foreign_keys[0]
        assert fk.columns == ("CustomerId",)
        assert fk.referenced_table == "dbo.Customers"
        assert fk.referenced_columns == ("Id",)

    def test_extracts_views_and_procedures(self):
        tree = extract(SCHEMA_SOURCE, SourceKind.DATABASE).tree

        assert [v.name for v in tree.views] == ["CustomerTotals"]
        assert "SUM(o.Total)" in tree.views[0].definition
        assert [p.name for p in tree.stored_procedures] == ["GetOrdersByCustomer"]
        assert tree.stored_procedures[0].parameters == ("@CustomerId INT", "@Since DATETIME2")

    def test_alter_table_foreign_key(self):
        ddl = SCHEMA_SOURCE + (
            "\nALTER TABLE dbo.Orders WITH CHECK ADD CONSTRAINT FK_Orders_Self "
            "FOREIGN KEY (Id) REFERENCES dbo.Orders (Id);\n"
        )

        orders = extract(ddl, SourceKind.DATABASE).tree.tables[1]

        assert "FK_Orders_Self" in {fk.name for fk in orders.foreign_keys}

    def test_malformed_ddl_returns_partial_tree_with_warnings(self):
        ddl = (
            "ALTER TABLE dbo.Missing ADD CONSTRAINT FK_X FOREIGN KEY (A) REFERENCES dbo.B (Id);\n"
            "CREATE TABLE dbo.Broken (\n"
            "    Id INT NOT NULL,\n"
            "    Name NVARCHAR(50"
        )

        result = extract(ddl, SourceKind.DATABASE)

        assert [t.name for t in result.tree.tables] == ["Broken"]
        assert "Id" in {c.name for c in result.tree.tables[0].columns}
        messages = [w.message for w in result.warnings]
        assert any("no closing parenthesis" in m for m in messages)
        assert any("undeclared table dbo.Missing" in m for m in messages)

    def test_input_without_schema_objects_warns(self):
        result = extract("SELECT 1;", SourceKind.DATABASE)

        assert result.tree.tables == ()
        assert [w.message for w in result.warnings] == ["No schema objects found"]


class TestMetadataExtractor:
    """Test analyzer selection and input validation"""

    @pytest.mark.parametrize("raw_text", ["", "   \n\t"])
    def test_empty_input_rejected(self, raw_text):
        with pytest.raises(ValidationError):
            extract(raw_text, SourceKind.API)

    def test_unknown_source_kind_rejected(self):
        with pytest.raises(ValidationError):
            extract("public class A {}", "graphql")

    def test_accepts_string_source_kind(self):
        result = extract(SCHEMA_SOURCE, "database")

        assert result.source_kind == SourceKind.DATABASE

    def test_missing_analyzer_rejected(self):
        extractor = MetadataExtractor(analyzers=[])

        with pytest.raises(ValidationError):
            extractor.extract("CREATE TABLE A (Id INT)", SourceKind.DATABASE)


class TestProjectFileMetadata:
    """Test .csproj parsing"""

    def test_extracts_project_metadata(self):
        csproj = """
<Project Sdk="Microsoft.NET.Sdk.Web">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
    <AssemblyName>Shop.Api</AssemblyName>
    <Version>2.3.1</Version>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Swashbuckle.AspNetCore" Version="6.5.0" />
    <PackageReference Include="Dapper" />
  </ItemGroup>
</Project>
"""
        metadata = extract_project_metadata(csproj)

        assert metadata.assembly_name == "Shop.Api"
        assert metadata.version == "2.3.1"
        assert metadata.target_framework == "net8.0"
        assert metadata.package_references == (
            ("Swashbuckle.AspNetCore", "6.5.0"),
            ("Dapper", ""),
        )

    def test_empty_project_file(self):
        metadata = extract_project_metadata("<Project />")

        assert metadata.assembly_name is None
        assert metadata.package_references == ()


class TestExtractionWarning:
    """Test the warning model itself"""

    def test_fields_do_not_shadow_base_model(self):
        assert set(ExtractionWarning.model_fields) == {"message", "line", "element"}
        assert not set(ExtractionWarning.model_fields) & set(dir(BaseModel))

    def test_element_is_optional(self):
        warning = ExtractionWarning(message="No schema objects found")

        assert warning.element is None
        assert warning.line is None
        assert ExtractionWarning(message="x", element="Orders").element == "Orders"
